"""
State Machine Module for the Sale Intake Flow
"""
from app.state_machine.states import FlowStep
from app.state_machine.manager import Flow, FlowRegistry

__all__ = ["FlowStep", "Flow", "FlowRegistry"]
