"""Child bridge runtime: lifecycle controller, IPC channel, signal and liveness handling."""

from childbridge.runtime.channel import MessageChannel, StdioTransport, Transport
from childbridge.runtime.contracts import (
	ControllerEvent,
	ControllerState,
	ExitCode,
	signal_exit_code,
	transition_controller_state,
)
from childbridge.runtime.controller import LifecycleController
from childbridge.runtime.host import ChildBridgeHost, run_child_bridge
from childbridge.runtime.liveness import LivenessMonitor
from childbridge.runtime.messages import Envelope, MessageKind, parse_envelope
from childbridge.runtime.signals import SignalHandler

__all__ = [
	"ChildBridgeHost",
	"ControllerEvent",
	"ControllerState",
	"Envelope",
	"ExitCode",
	"LifecycleController",
	"LivenessMonitor",
	"MessageChannel",
	"MessageKind",
	"SignalHandler",
	"StdioTransport",
	"Transport",
	"parse_envelope",
	"run_child_bridge",
	"signal_exit_code",
	"transition_controller_state",
]
