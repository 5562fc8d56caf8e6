"""Command-line interface for git-sc."""

import logging
import sys
import time

import click
import pyperclip

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from gitsc import __version__
from gitsc.core.cooldown import CooldownStore
from gitsc.core.diff_filter import DiffFilter
from gitsc.core.errors import (
    AllProvidersFailed,
    GitSCError,
    NoChangesError,
    NoStagedChangesError,
    ProviderUnavailable,
    UserCancelledError,
)
from gitsc.core.git_repo import GitRepository
from gitsc.core.prompt import build_prompt
from gitsc.core.providers import (
    Provider,
    is_installed,
    parse_providers,
    supported_providers,
)
from gitsc.core.selector import ProviderSelector
from gitsc.utils.config import Config, parse_value

console = Console()


def _setup_logging(debug: bool) -> None:
    handler = RichHandler(
        console=console,
        show_path=False,
        show_time=debug,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    # GitPython logs every command at DEBUG
    logging.getLogger("git").setLevel(logging.INFO)


def _announce_provider(provider: Provider) -> None:
    console.print(f"  [dim]Using[/dim] [cyan]{provider.display_name}[/cyan]...")


def _build_selector(config: Config, provider_override) -> ProviderSelector:
    names = list(provider_override) or config.get_providers()
    store = CooldownStore.load(config.state_file, config.get_cooldown_minutes())
    return ProviderSelector(
        parse_providers(names),
        store,
        models=config.get_models(),
        timeout=config.get_timeout(),
        on_attempt=_announce_provider,
    )


def _print_error(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if isinstance(error, AllProvidersFailed) and error.failures and all(
        isinstance(exc, ProviderUnavailable) for _, exc in error.failures
    ):
        console.print("\nInstall at least one AI CLI:")
        for name, _ in error.failures:
            provider = Provider(name)
            console.print(f"  • {provider.display_name}: {provider.install_url}")


def _show_recent_commits(recent_commits) -> None:
    if not recent_commits:
        console.print(
            "[cyan]No recent commits found.[/cyan] "
            "[yellow]Using Conventional Commits format.[/yellow]"
        )
        return
    console.print("[cyan]Recent commits (for format reference):[/cyan]")
    for subject in recent_commits:
        console.print(f"  [dim]{escape(subject)}[/dim]")


def _generate(selector: ProviderSelector, prompt: str) -> str:
    with console.status("[bold green]Generating commit message with AI...", spinner="dots"):
        result = selector.generate(prompt)
    console.print(f"[dim]Generated by {result.provider.display_name}[/dim]")
    return result.message


def _apply_prefix(repo: GitRepository, config: Config, message: str) -> str:
    script = config.get_prefix_script()
    if not script:
        return message
    remote_url = repo.get_remote_url()
    branch = repo.get_current_branch()
    if not remote_url or not branch:
        return message
    prefix = repo.run_prefix_script(script, remote_url, branch)
    if not prefix:
        return message
    return prefix.rstrip("\r\n") + message


def _display_message(message: str, title: str) -> None:
    console.print()
    console.print(
        Panel(
            message,
            title=f"[bold green]{title}[/bold green]",
            border_style="green",
        )
    )
    console.print()


def _copy_to_clipboard(message: str) -> None:
    try:
        pyperclip.copy(message)
        console.print("[bold green]✓[/bold green] Copied to clipboard!")
    except pyperclip.PyperclipException:
        console.print("[yellow]Could not copy to clipboard[/yellow]")


def _confirm(message: str, question: str, auto_confirm: bool) -> str:
    """
    Ask whether to use the message, letting the user edit it first.

    Returns:
        The message to use

    Raises:
        UserCancelledError: If the user declines or empties the message
    """
    if auto_confirm:
        return message

    console.print(f"[bold]{question}[/bold]")
    console.print("  [green]y[/green] - Yes")
    console.print("  [yellow]e[/yellow] - Edit message")
    console.print("  [red]n[/red] - Cancel")

    choice = click.prompt("\nChoice", type=click.Choice(["y", "e", "n"]), default="y")
    if choice == "n":
        raise UserCancelledError()

    if choice == "e":
        edited = click.edit(message)
        if edited is None:
            return message
        if not edited.strip():
            raise UserCancelledError()
        return edited.strip()

    return message


def _run_commit(repo, config, selector, options) -> None:
    if options["stage_all"]:
        console.print("[yellow]Staging all changes...[/yellow]")
        repo.stage_all()

    diff = repo.get_staged_diff()
    needs_staging = False
    if not diff.strip():
        if not options["include_unstaged"]:
            raise NoStagedChangesError()
        diff = repo.get_unstaged_diff()
        if not diff.strip():
            raise NoChangesError()
        console.print(
            "[yellow]No staged changes. Using unstaged changes for message generation.[/yellow]"
        )
        needs_staging = True

    recent_commits = repo.get_recent_commits(options["recent_count"])
    _show_recent_commits(recent_commits)

    prompt = build_prompt(
        diff,
        recent_commits,
        language=options["language"],
        prefix_type=options["prefix_type"],
        with_body=options["with_body"],
    )
    message = _apply_prefix(repo, config, _generate(selector, prompt))
    _display_message(message, "Generated Commit Message")

    if options["copy"]:
        _copy_to_clipboard(message)

    if options["dry_run"]:
        console.print("[yellow]Dry run mode - no commit was made.[/yellow]")
        return

    message = _confirm(message, "Create this commit?", options["auto_confirm"])
    if needs_staging:
        console.print("[yellow]Staging changes...[/yellow]")
        repo.stage_all()
    commit_hash = repo.commit(message)
    console.print("\n[bold green]✓[/bold green] Commit created successfully!")
    console.print(f"[bold]Commit hash:[/bold] {commit_hash[:7]}")


def _run_amend(repo, config, selector, options) -> None:
    console.print("[cyan]Amend mode: regenerating message for last commit...[/cyan]")
    if not repo.has_commits():
        raise NoChangesError()

    diff = repo.get_last_commit_diff()
    if not diff.strip():
        raise NoChangesError()

    # skip the commit being amended
    recent_commits = repo.get_recent_commits(options["recent_count"], skip=1)
    _show_recent_commits(recent_commits)

    prompt = build_prompt(
        diff,
        recent_commits,
        language=options["language"],
        prefix_type=options["prefix_type"],
        with_body=options["with_body"],
    )
    message = _apply_prefix(repo, config, _generate(selector, prompt))
    _display_message(message, "Generated Commit Message")

    if options["copy"]:
        _copy_to_clipboard(message)

    if options["dry_run"]:
        console.print("[yellow]Dry run mode - commit was not amended.[/yellow]")
        return

    message = _confirm(message, "Amend this commit?", options["auto_confirm"])
    commit_hash = repo.amend_commit(message)
    console.print("\n[bold green]✓[/bold green] Commit amended successfully!")
    console.print(f"[bold]Commit hash:[/bold] {commit_hash[:7]}")


def _run_reword(repo, config, selector, options, count) -> None:
    plan = repo.plan_reword(count)
    console.print(
        f"[cyan]Reword mode: regenerating message for {plan.target[:7]}[/cyan] "
        f"[dim]{escape(plan.subject)}[/dim]"
    )
    if not plan.diff.strip():
        raise NoChangesError()

    recent_commits = repo.get_recent_commits(options["recent_count"], rev=plan.target, skip=1)
    _show_recent_commits(recent_commits)

    prompt = build_prompt(
        plan.diff,
        recent_commits,
        language=options["language"],
        prefix_type=options["prefix_type"],
        with_body=options["with_body"],
    )
    message = _apply_prefix(repo, config, _generate(selector, prompt))
    _display_message(message, "Generated Commit Message")

    if options["copy"]:
        _copy_to_clipboard(message)

    if options["dry_run"]:
        console.print("[yellow]Dry run mode - history was not rewritten.[/yellow]")
        return

    message = _confirm(message, "Reword this commit?", options["auto_confirm"])
    commit_hash = repo.reword(plan, message)
    console.print("\n[bold green]✓[/bold green] Commit reworded successfully!")
    console.print(f"[bold]Commit hash:[/bold] {commit_hash[:7]}")


def _run_squash(repo, config, selector, options, base) -> None:
    plan = repo.plan_squash(base or None)
    console.print(
        f"[cyan]Squashing {len(plan.subjects)} commit(s) onto [bold]{plan.base}[/bold]:[/cyan]"
    )
    for subject in plan.subjects:
        console.print(f"  [dim]{escape(subject)}[/dim]")

    if not plan.diff.strip():
        raise NoChangesError()

    recent_commits = repo.get_recent_commits(options["recent_count"], rev=plan.merge_base)
    _show_recent_commits(recent_commits)

    prompt = build_prompt(
        plan.diff,
        recent_commits,
        language=options["language"],
        prefix_type=options["prefix_type"],
        with_body=options["with_body"],
    )
    message = _apply_prefix(repo, config, _generate(selector, prompt))
    _display_message(message, "Generated Squash Message")

    if options["copy"]:
        _copy_to_clipboard(message)

    if options["dry_run"]:
        console.print("[yellow]Dry run mode - nothing was squashed.[/yellow]")
        return

    message = _confirm(message, "Squash with this message?", options["auto_confirm"])
    commit_hash = repo.squash(plan, message)
    console.print("\n[bold green]✓[/bold green] Commits squashed successfully!")
    console.print(f"[bold]Commit hash:[/bold] {commit_hash[:7]}")


@click.group(invoke_without_command=True)
@click.option("--yes", "-y", "auto_confirm", is_flag=True, help="Commit without asking")
@click.option("--dry-run", "-n", is_flag=True, help="Generate the message only")
@click.option("--all", "-a", "stage_all", is_flag=True, help="Stage all changes first")
@click.option(
    "--include-unstaged",
    "-u",
    is_flag=True,
    help="Use unstaged changes when nothing is staged",
)
@click.option("--amend", is_flag=True, help="Regenerate the message of the last commit")
@click.option(
    "--squash",
    "squash_base",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[BASE]",
    help="Squash the current branch into one commit (base auto-detected if omitted)",
)
@click.option(
    "--reword",
    "reword_count",
    type=click.IntRange(min=1),
    metavar="N",
    help="Regenerate the message of the N-th most recent commit (1 is the last commit)",
)
@click.option("--lang", "-l", "language", help="Language of the commit message")
@click.option("--body/--no-body", "with_body", default=None, help="Add a bullet-point body")
@click.option(
    "--prefix",
    "prefix_type",
    help="Prefix style: auto, conventional, bracket, colon, emoji, plain, or a custom format",
)
@click.option(
    "--provider",
    "-p",
    "providers",
    multiple=True,
    type=click.Choice(supported_providers(), case_sensitive=False),
    help="Provider to use; repeat to set the fallback order",
)
@click.option("--copy", is_flag=True, help="Copy the message to the clipboard")
@click.option("--debug", "-d", is_flag=True, help="Show debug logs and tracebacks")
@click.pass_context
def cli(
    ctx,
    auto_confirm,
    dry_run,
    stage_all,
    include_unstaged,
    amend,
    squash_base,
    reword_count,
    language,
    with_body,
    prefix_type,
    providers,
    copy,
    debug,
):
    """git-sc - Smart commit messages from Gemini, Codex or Claude CLIs."""
    _setup_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    # If a subcommand is being called, don't run the main logic
    if ctx.invoked_subcommand is not None:
        return

    modes = [
        name
        for name, used in (
            ("--amend", amend),
            ("--squash", squash_base is not None),
            ("--reword", reword_count is not None),
        )
        if used
    ]
    if len(modes) > 1:
        raise click.UsageError(f"{' and '.join(modes)} cannot be used together.")

    try:
        config = Config()
        repo = GitRepository(diff_filter=DiffFilter(config.get_exclude_patterns()))
        selector = _build_selector(config, providers)

        options = {
            "auto_confirm": auto_confirm,
            "dry_run": dry_run,
            "stage_all": stage_all,
            "include_unstaged": include_unstaged,
            "language": language or config.get_language(),
            "prefix_type": prefix_type or config.get_prefix_type(),
            "with_body": config.should_include_body() if with_body is None else with_body,
            "recent_count": config.get_recent_commit_count(),
            "copy": copy,
        }

        if amend:
            _run_amend(repo, config, selector, options)
        elif squash_base is not None:
            _run_squash(repo, config, selector, options, squash_base)
        elif reword_count is not None:
            _run_reword(repo, config, selector, options, reword_count)
        else:
            _run_commit(repo, config, selector, options)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted. No commit was made.[/yellow]")
        sys.exit(130)
    except GitSCError as e:
        _print_error(e)
        if debug:
            raise
        sys.exit(1)
    except Exception as e:
        console.print(f"[bold red]Unexpected error:[/bold red] {e}")
        if debug:
            raise
        sys.exit(1)


@cli.group()
def config():
    """Manage git-sc configuration."""
    pass


@config.command("show")
def config_show():
    """Show current configuration."""
    cfg = _load_config_or_exit()
    console.print("\n[bold]Current Configuration:[/bold]\n")
    console.print(cfg.show(), markup=False)


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key, value):
    """Set a configuration value, e.g. `git-sc config set models.claude sonnet`."""
    cfg = _load_config_or_exit()
    parsed = parse_value(key, value)

    if key == "providers":
        unknown = [p for p in parsed if Provider.parse(p) is None]
        if unknown:
            console.print(
                f"[bold red]Error:[/bold red] Unknown provider(s): {', '.join(unknown)}. "
                f"Supported providers: {', '.join(supported_providers())}"
            )
            sys.exit(1)
        parsed = [p.lower() for p in parsed]

    cfg.set(key, parsed)
    console.print(f"[bold green]✓[/bold green] {key} = {parsed!r}")


@config.command("reset")
def config_reset():
    """Reset configuration to defaults."""
    cfg = _load_config_or_exit()
    cfg.reset()
    console.print("[bold green]✓[/bold green] Configuration reset to defaults!")


@config.command("path")
def config_path():
    """Show where configuration and state are stored."""
    cfg = _load_config_or_exit()
    console.print(f"Config file: {cfg.config_file}")
    console.print(f"State file: {cfg.state_file}")


@cli.command()
def status():
    """Show provider order, installation and cooldowns."""
    cfg = _load_config_or_exit()
    store = CooldownStore.load(cfg.state_file, cfg.get_cooldown_minutes())
    providers = parse_providers(cfg.get_providers())
    now = time.time()

    table = Table(title="AI Providers (effective order)")
    table.add_column("#", style="dim")
    table.add_column("Provider", style="cyan")
    table.add_column("Model", style="green")
    table.add_column("Installed")
    table.add_column("Cooldown", style="yellow")

    for rank, provider in enumerate(store.effective_order(providers, now), start=1):
        remaining = store.remaining(provider, now)
        cooldown = f"{int(remaining // 60)}m {int(remaining % 60)}s left" if remaining else "-"
        installed = "[green]yes[/green]" if is_installed(provider) else "[red]no[/red]"
        table.add_row(
            str(rank),
            provider.display_name,
            cfg.get_model(provider.value),
            installed,
            cooldown,
        )

    console.print("\n")
    console.print(table)
    minutes = cfg.get_cooldown_minutes()
    if minutes:
        console.print(f"\nCooldown after a failure: {minutes} minutes\n")
    else:
        console.print("\nCooldown disabled\n")


@cli.command()
def version():
    """Show git-sc version."""
    console.print(f"[bold]git-sc[/bold] v{__version__}")
    console.print("Smart commit messages from AI command-line agents")


def _load_config_or_exit() -> Config:
    try:
        return Config()
    except GitSCError as e:
        _print_error(e)
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
