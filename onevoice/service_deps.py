"""Request dependencies resolving the components built in the app lifespan."""

from __future__ import annotations

from fastapi import Request

from .config import ServiceConfig
from .ingest import IngestGateway
from .lifecycle import SessionController
from .providers import Providers
from .relay import SpeechRelay
from .store import SessionStore


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def get_gateway(request: Request) -> IngestGateway:
    return request.app.state.gateway


def get_providers(request: Request) -> Providers:
    return request.app.state.providers


def get_relay(request: Request) -> SpeechRelay:
    return request.app.state.relay
