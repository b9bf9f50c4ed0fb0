"""API module for the WeChat Pay mini-program service."""

from .pay_api import create_app, PayAPI

__all__ = ['create_app', 'PayAPI']
