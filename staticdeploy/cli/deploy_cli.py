"""
CLI for running and inspecting static deploys.
Thin wrapper over DeploymentService.
"""
import sys
import asyncio
import click
import logging
from datetime import datetime

from ..config.deploy_config import load_deploy_config
from ..core.enums import OutcomeKind
from ..core.errors import ConfigError, LockContention
from ..deploy.service import DeploymentService


def _setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _service(config_path: str) -> DeploymentService:
    try:
        config = load_deploy_config(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e))
    return DeploymentService(config, config_path=config_path)


config_option = click.option('--config', 'config_path', default=None, help='Path to staticdeploy YAML config')
log_level_option = click.option('--log-level', default='INFO', help='Log level')


@click.group()
def cli():
    """Mirror a live site into a static tree and publish it via pull request"""
    pass


@cli.command()
@click.option('--full', is_flag=True, help='Ignore the build watermark and mirror everything')
@config_option
@log_level_option
def run(full: bool, config_path: str, log_level: str):
    """Run a deploy in the foreground"""
    _setup_logging(log_level)
    service = _service(config_path)

    outcome = asyncio.run(service.run(full=full))

    if outcome.kind == OutcomeKind.SUCCESS:
        click.echo(f"✅ {outcome.reason}")
    elif outcome.kind == OutcomeKind.NO_CHANGES:
        click.echo(f"No changes: {outcome.reason}")
    elif outcome.kind == OutcomeKind.SKIPPED:
        click.echo("Deploy already running, skipped")
    else:
        click.echo(f"❌ Deploy failed: {outcome.reason}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--full', is_flag=True, help='Request a full rebuild')
@config_option
@log_level_option
def trigger(full: bool, config_path: str, log_level: str):
    """Start a deploy in the background"""
    _setup_logging(log_level)
    service = _service(config_path)

    # The child clears the watermark itself once it holds the lock
    if service.start_run(full=full):
        click.echo("Deploy triggered")
    else:
        click.echo("Deploy already running, trigger skipped")


@cli.command()
@config_option
def status(config_path: str):
    """Show whether a deploy is running and how the last one ended"""
    service = _service(config_path)
    info = service.status()
    last = info['last_result']

    click.echo(f"Status: {info['message']}")
    click.echo(f"Last build time: {info['last_build_time'] or 'never'}")
    if last.get('time'):
        when = datetime.fromtimestamp(last['time']).strftime('%Y-%m-%d %H:%M:%S')
        click.echo(f"Last result: {last['kind']} at {when}")
        if last.get('message'):
            click.echo(f"  {last['message']}")
    if info['lock']:
        lock = info['lock']
        state = 'alive' if lock['alive'] else 'not running'
        click.echo(f"Lock: pid {lock['pid']} ({state}), held for {lock['age_seconds']:.0f}s")


@cli.command()
@click.option('-n', '--lines', default=50, show_default=True, help='Number of log lines')
@config_option
def logs(lines: int, config_path: str):
    """Show the tail of the deploy log"""
    service = _service(config_path)
    click.echo(service.tail_log(lines), nl=False)


@cli.command('test-github')
@config_option
@log_level_option
def test_github(config_path: str, log_level: str):
    """Check GitHub token and repository access"""
    _setup_logging(log_level)
    service = _service(config_path)

    check = asyncio.run(service.test_connection())
    if check.ok:
        click.echo(f"✅ {check.message}")
    else:
        raise click.ClickException(f"{check.status.value}: {check.message}")


@cli.command()
@config_option
@log_level_option
def doctor(config_path: str, log_level: str):
    """Check that everything a deploy needs is in place"""
    _setup_logging(log_level)
    service = _service(config_path)

    checks = asyncio.run(service.check_prerequisites())
    for check in checks:
        mark = "✅" if check.ok else "❌"
        click.echo(f"{mark} {check.name}: {check.detail}")

    issues = service.config.validate()
    for issue in issues:
        click.echo(f"❌ config: {issue}")

    if issues or not all(check.ok for check in checks):
        sys.exit(1)


@cli.command()
@click.option('--force', is_flag=True, help='Remove the lock even if its holder is alive')
@config_option
def unlock(force: bool, config_path: str):
    """Clear a stale run lock"""
    service = _service(config_path)
    try:
        removed = service.unlock(force=force)
    except LockContention as e:
        raise click.ClickException(f"{e}; use --force to remove it anyway")
    click.echo("Lock removed" if removed else "No lock held")


if __name__ == '__main__':
    cli()
