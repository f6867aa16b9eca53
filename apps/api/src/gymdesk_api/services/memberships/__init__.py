"""Membership lifecycle services."""

from .state_machine import MembershipStateMachine

__all__ = ["MembershipStateMachine"]
