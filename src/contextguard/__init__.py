"""
ContextGuard: context-aware access control for protected resources.

Turns a request's situational context (device, country, time) and a
resource's access policy into an allow, deny or step-up verdict.
"""

__version__ = "0.1.0"
