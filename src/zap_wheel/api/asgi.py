"""ASGI entrypoint for the zap wheel API."""

from zap_wheel.api.app import create_app
from zap_wheel.containers import build_container

app = create_app(build_container())
