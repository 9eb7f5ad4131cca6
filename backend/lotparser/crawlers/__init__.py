"""Transport and external-process collaborators."""

from .dispatcher import RequestDispatcher
from .minter import ExternalCookieMinter, MintResult, SubprocessRunner

__all__ = ['RequestDispatcher', 'ExternalCookieMinter', 'MintResult', 'SubprocessRunner']
