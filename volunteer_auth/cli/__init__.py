"""``flask users ...`` command registration."""

from __future__ import annotations

from flask import Flask

from .users import users_cli


def init_app(app: Flask) -> None:
    app.cli.add_command(users_cli)
