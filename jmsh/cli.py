"""
jmsh/cli.py

Command-line interface.

Usage:
    jmsh db01
    jmsh root@db01
    jmsh --endpoint https://jump.example.com -u alice db01
"""

from __future__ import annotations
import os
import sys
import base64
import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

import click

from . import keychain
from .auth import authenticate
from .client import JumpClient
from .config import ConfigManager, validate_endpoint
from .errors import JmshError
from .models import RemoteIdentity
from .session.local_terminal import StdioTerminal

logger = logging.getLogger(__name__)


def split_target(target: str) -> Tuple[Optional[str], str]:
    """'user@host' -> ('user', 'host'); 'host' -> (None, 'host')."""
    idx = target.find("@")
    if idx > 0:
        return target[:idx], target[idx + 1:]
    return None, target


def pick_identity(identities: List[RemoteIdentity], user: Optional[str]) -> RemoteIdentity:
    """
    Choose the system user to log in as.

    A user named on the command line must exist; otherwise a single
    identity is used as-is and several are offered as a numbered menu.
    """
    options = [i.username for i in identities]

    if user:
        for identity in identities:
            if identity.username == user:
                return identity
        raise click.ClickException(
            f"no system user found (available option are: {', '.join(options)})"
        )

    if len(identities) == 1:
        return identities[0]

    click.echo("Select System User:", err=True)
    for n, identity in enumerate(identities, 1):
        click.echo(f"  {n}) {identity.username} ({identity.name})", err=True)
    choice = click.prompt("Choice", type=click.IntRange(1, len(identities)), err=True)
    return identities[choice - 1]


# -----------------------------------------------------------------------------
# Captcha display
# -----------------------------------------------------------------------------

def _iterm_inline_image(img: bytes) -> str:
    """iTerm2 inline image escape, wrapped for tmux/screen passthrough."""
    osc, st = "\x1b]", "\x07"
    if os.environ.get("TERM", "").startswith("screen"):
        osc, st = "\x1bPtmux;\x1b\x1b]", "\x07\x1b\\"
    content = base64.b64encode(img).decode("ascii")
    return (
        f"{osc}1337;File=name=captcha.png;size={len(img)};"
        f"height=4;width=auto;inline=1:{content}{st}"
    )


def resolve_captcha(img: bytes) -> str:
    """Show the captcha image and ask the user to read it."""
    if os.environ.get("TERM_PROGRAM") == "iTerm.app":
        click.echo("Captcha founded, please interpret it:", err=True)
        click.echo(_iterm_inline_image(img), err=True)
        return click.prompt("Captcha", err=True)

    fd, path = tempfile.mkstemp(prefix="jmsh_captcha_", suffix=".png")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(img)
        click.echo(f"Captcha founded, please interpret it: file://{path}", err=True)
        click.echo("Open another Terminal or press Ctrl-Z to inspect image", err=True)
        return click.prompt("Captcha", err=True)
    finally:
        os.unlink(path)


def resolve_otp() -> str:
    return click.prompt("OTP", err=True)


# -----------------------------------------------------------------------------
# Command
# -----------------------------------------------------------------------------

def _validate_endpoint_option(ctx, param, value):
    if value is None:
        return value
    try:
        validate_endpoint(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return value


@click.command()
@click.argument("target", required=False)
@click.option("--endpoint", default=None, callback=_validate_endpoint_option,
              help="Jumpserver URL, e.g. https://jump.example.com")
@click.option("-u", "--username", default=None, help="Jumpserver login name")
@click.option("--config", "config_path", default=None,
              type=click.Path(dir_okay=False, path_type=Path),
              help="Config file (default: $XDG_CONFIG_HOME/jmsh/config.json)")
@click.option("-k", "--insecure", is_flag=True, help="Do not verify TLS certificates")
@click.option("-v", "--verbose", count=True, help="Log to stderr (-vv for debug)")
def cli(target, endpoint, username, config_path, insecure, verbose):
    """Open a terminal on TARGET ([USER@]HOSTNAME) through Jumpserver."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG if verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    user, hostname = split_target(target) if target else (None, "")

    manager = ConfigManager(config_path)
    config = manager.config
    should_save_config = False

    if endpoint and endpoint != config.endpoint:
        config.endpoint = endpoint
        should_save_config = True
    if username and username != config.username:
        config.username = username
        should_save_config = True
    if not config.endpoint:
        config.endpoint = click.prompt(
            "Endpoint", value_proc=_prompt_endpoint, err=True
        )
        should_save_config = True
    if not config.username:
        config.username = click.prompt("Username", err=True)
        should_save_config = True

    try:
        client = JumpClient(
            config.endpoint,
            verify=config.verify_tls and not insecure,
            timeout=config.timeout,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    try:
        password = None
        if config.save_password:
            password = keychain.find_password(config.endpoint, config.username)
        from_keychain = password is not None
        if password is None:
            password = click.prompt("Password", hide_input=True, err=True)

        authenticate(
            client,
            config.username,
            password,
            captcha_resolver=resolve_captcha,
            otp_resolver=resolve_otp,
        )
        click.echo("login success", err=True)

        should_save_password = False
        if config.save_password is None and keychain.is_available():
            if click.confirm("Save password", default=False, err=True):
                config.save_password = True
                should_save_password = True
            else:
                config.save_password = False
            should_save_config = True
        elif config.save_password and not from_keychain:
            should_save_password = True

        if should_save_config:
            click.echo("saving config", err=True)
            try:
                manager.save()
            except OSError as e:
                raise click.ClickException(f"failed to save config: {e}")
        if should_save_password:
            try:
                keychain.store_password(config.endpoint, config.username, password)
            except JmshError as e:
                click.echo(str(e), err=True)

        if not hostname:
            hostname = click.prompt("Hostname", err=True)

        asset = client.find_asset_by_hostname(hostname)
        if asset is None:
            raise click.ClickException("no asset found")

        identities = client.list_remote_identities(asset.id)
        if not identities:
            raise click.ClickException("no system user found")
        identity = pick_identity(identities, user)

        try:
            terminal = StdioTerminal()
        except RuntimeError as e:
            raise click.ClickException(str(e))
        if not terminal.is_tty():
            raise click.ClickException("stdin is not a terminal")

        click.echo(f"connecting {identity.username}@{asset.hostname}", err=True)
        try:
            client.connect_asset(asset.id, identity.id, terminal=terminal)
        finally:
            click.echo("Connection closed", err=True)

    except JmshError as e:
        raise click.ClickException(str(e))


def _prompt_endpoint(value: str) -> str:
    try:
        validate_endpoint(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return value


def main():
    cli()


if __name__ == "__main__":
    main()
