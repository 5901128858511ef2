#!/usr/bin/env python3
"""
runas command line interface

Prints shell export lines for a profile's temporary credentials, so that

    eval $(runas admin)

leaves AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and AWS_SESSION_TOKEN set in
the calling shell. Profiles with a role_arn get assumed role credentials; all
others get an MFA-gated session token.

Usage:
    runas [OPTIONS] [PROFILE]
    runas --list-profiles
    runas --list-roles [PROFILE]
    runas --expiration [PROFILE]

Module: cli
"""

import os
import shlex
import sys
from datetime import timedelta
from typing import Optional

import click
import structlog

from .auth import AssumeRoleProvider, ProviderOptions, SessionTokenProvider
from .auth.providers import CachedCredentialsProvider
from .config import Settings, get_settings
from .exceptions import RunasError
from .identity import AwsIdentityProvider
from .logging_config import configure_logging
from .profiles import Profile, ProfileResolver
from .version import __version__

logger = structlog.get_logger(__name__)


def _hours(value: Optional[float]) -> Optional[timedelta]:
    if not value:
        return None
    return timedelta(hours=value)


def prompt_mfa_code(mfa_serial: str) -> str:
    """Ask for an MFA code on stderr so stdout stays safe to eval."""
    return click.prompt(f"Enter MFA code for {mfa_serial}", err=True)


def export_lines(env: dict) -> list[str]:
    """Format environment variables as POSIX shell export statements"""
    return [f"export {key}={shlex.quote(value)}" for key, value in env.items()]


def handle_error(error: RunasError, verbose: bool = False) -> None:
    """Print a terminal error message and exit with status 1"""
    click.echo(error.format() if verbose else f"Error: {error.message}", err=True)
    sys.exit(1)


def build_provider(
    profile: Profile,
    options: ProviderOptions,
    settings: Settings,
) -> CachedCredentialsProvider:
    """Choose the assume role provider for role profiles, the session token provider otherwise"""
    if options.role_arn or profile.role_arn:
        return AssumeRoleProvider(profile, options, settings=settings)
    return SessionTokenProvider(profile, options, settings=settings)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("profile_name", metavar="PROFILE", required=False)
@click.option("--duration", "-d", type=float, help="Session token duration in hours (0.25 to 36, default 12)")
@click.option("--role-duration", "-a", type=float, help="Assume role duration in hours (0.25 to 12, default 1)")
@click.option("--role-arn", "-r", help="Role ARN to assume instead of the profile's role_arn")
@click.option("--mfa-serial", "-M", help="MFA device serial instead of the profile's mfa_serial")
@click.option("--refresh", "-R", is_flag=True, help="Discard cached credentials and fetch new ones")
@click.option("--expiration", "-e", is_flag=True, help="Print the credential expiration time instead of exports")
@click.option("--list-roles", "-l", is_flag=True, help="List the IAM roles the profile's user may assume")
@click.option("--list-profiles", "-p", is_flag=True, help="List the profiles in the AWS config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging and detailed errors")
@click.option("--json-logs", is_flag=True, help="Write logs as JSON")
@click.version_option(version=__version__, prog_name="runas")
def cli(
    profile_name: Optional[str],
    duration: Optional[float],
    role_duration: Optional[float],
    role_arn: Optional[str],
    mfa_serial: Optional[str],
    refresh: bool,
    expiration: bool,
    list_roles: bool,
    list_profiles: bool,
    verbose: bool,
    json_logs: bool,
):
    """
    Print shell exports for temporary AWS credentials of PROFILE

    Examples:
        eval $(runas)
        eval $(runas admin)
        runas --role-arn arn:aws:iam::123456789012:role/ReadOnly dev
        runas --list-roles
    """
    # Logging goes to stderr before anything else can log; stdout is for eval
    configure_logging(
        "DEBUG" if verbose else os.getenv("LOG_LEVEL", "WARNING"),
        json_logs=json_logs or os.getenv("LOG_FORMAT", "").lower() == "json",
    )
    settings = get_settings()

    try:
        resolver = ProfileResolver(settings=settings)

        if list_profiles:
            for name in resolver.list_profiles():
                click.echo(name)
            return

        profile = resolver.resolve(profile_name) if profile_name else resolver.resolve_default()
        options = ProviderOptions(
            session_token_duration=_hours(duration),
            assume_role_duration=_hours(role_duration),
            role_arn=role_arn,
            mfa_serial=mfa_serial,
            mfa_prompt=prompt_mfa_code,
            log_level="DEBUG" if verbose else None,
        )

        if list_roles:
            session_provider = SessionTokenProvider(profile, options, settings=settings)
            if refresh:
                session_provider.clear_cache()
            discovery = AwsIdentityProvider(
                session=session_provider.get_session(),
                max_workers=settings.max_workers,
            )
            for arn in discovery.roles():
                click.echo(arn)
            return

        provider = build_provider(profile, options, settings)
        if refresh:
            provider.clear_cache()

        credentials = provider.retrieve()
        logger.debug("Credentials ready", profile=profile.name, provider=credentials.provider_name)

        if expiration:
            click.echo(provider.expiration_time().isoformat())
            return

        for line in export_lines(credentials.to_env()):
            click.echo(line)

    except RunasError as e:
        handle_error(e, verbose)


def main():
    cli()


if __name__ == "__main__":
    main()
