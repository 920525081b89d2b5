"""
Perch Security - login redirection helpers.
"""

from .login_url import DefaultLoginUrlBuilder, LoginUrlBuilder

__all__ = ["LoginUrlBuilder", "DefaultLoginUrlBuilder"]
