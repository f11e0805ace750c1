"""CLI and REPL for epicchat."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from epicchat.agent import EpicChatAgent
from epicchat.config import Config
from epicchat.learnings import CrossProjectContextCache, append_learnings
from epicchat.llm import LLM
from epicchat.models import (
    ChatMessage,
    ChatRequest,
    CommandType,
    ErrorEvent,
    ErrorKind,
    SessionEvent,
    TextComplete,
    TextDelta,
)
from epicchat.utils.logging import SessionLogger

app = typer.Typer(help="epicchat - AI chat scoped to an epic")
console = Console()


class RichSurface:
    """Renders session events on the terminal."""

    def __init__(self, console: Console):
        self.console = console
        self.closed = False

    def deliver(self, epic_id: str, event: SessionEvent) -> None:
        if isinstance(event, TextDelta):
            self.console.print(event.text, end="", markup=False, highlight=False)
        elif isinstance(event, TextComplete):
            self.console.print()
        elif isinstance(event, ErrorEvent):
            self.console.print()
            self.console.print(Panel(
                event.message,
                title=f"Error ({event.kind.value})",
                border_style="red",
            ))
            if event.kind is ErrorKind.AUTH:
                self.console.print("[yellow]Set ANTHROPIC_API_KEY in .env and restart.[/yellow]")

    def close(self) -> None:
        self.closed = True


class REPL:
    """Interactive REPL for one epic."""

    def __init__(
        self,
        project_root: Path,
        epic_id: str,
        config: Config,
        command_type: CommandType = CommandType.CHAT,
    ):
        """Initialize REPL.

        Args:
            project_root: Workspace root
            epic_id: Epic to chat about
            config: Configuration object
            command_type: Initial command mode
        """
        self.project_root = project_root
        self.epic_id = epic_id
        self.config = config
        self.command_type = command_type
        self.history: list[ChatMessage] = []
        self.running = True

        # One loop for the whole REPL so the HTTP client survives between turns
        self.loop = asyncio.new_event_loop()
        self.surface = RichSurface(console)
        self.logger = SessionLogger(project_root)
        self.agent = EpicChatAgent(
            self._build_llm(config.default_model),
            self.surface,
            cross_project_cache=CrossProjectContextCache(config.cross_project_ttl),
            run_log=self.logger,
            stream_timeout=config.stream_timeout,
        )

    def _build_llm(self, model: str) -> LLM:
        descriptor = LLM.parse_model_string(model, self.config.max_tokens)
        return LLM(descriptor, self.config.anthropic_api_key)

    def start(self) -> None:
        """Start the REPL."""
        console.print(Panel.fit(
            "[bold cyan]epicchat[/bold cyan] - AI chat scoped to an epic\n"
            f"Project: {self.project_root}\n"
            f"Epic: {self.epic_id}\n"
            f"Model: {self.config.default_model}\n"
            "\n"
            "Type /help for commands or /quit to exit",
            border_style="cyan"
        ))

        while self.running:
            try:
                user_input = console.input(
                    f"[bold cyan]{self.epic_id} ({self.command_type.value})>[/bold cyan] "
                ).strip()

                if not user_input:
                    continue

                self.handle_input(user_input)

            except KeyboardInterrupt:
                console.print("\n[dim]Use /quit to exit[/dim]")
                continue
            except EOFError:
                break

        self.surface.close()
        self.loop.close()
        console.print("\n[cyan]Goodbye![/cyan]")

    def handle_input(self, user_input: str) -> None:
        """Handle user input (command or message).

        Args:
            user_input: User input string
        """
        if user_input.startswith("/"):
            self.handle_command(user_input)
        else:
            self.send(user_input)

    def handle_command(self, command: str) -> None:
        """Handle slash command.

        Args:
            command: Command string (starting with /)
        """
        parts = command.split(maxsplit=1)
        cmd = parts[0].lower()
        args = parts[1] if len(parts) > 1 else ""

        try:
            if cmd == "/help":
                self.show_help()
            elif cmd == "/quit" or cmd == "/exit":
                self.running = False
            elif cmd in ("/interview", "/review", "/chat"):
                self.command_type = CommandType(cmd[1:])
                console.print(f"[dim]Mode: {self.command_type.value}[/dim]")
                if args:
                    self.send(args)
            elif cmd == "/learn":
                if not args:
                    console.print("[red]Usage: /learn <text>[/red]")
                    return
                append_learnings(self.project_root, [args])
                console.print("[green]Learning recorded[/green]")
            elif cmd == "/clear":
                self.history = []
                console.print("[dim]Conversation cleared[/dim]")
            elif cmd == "/model":
                if args:
                    try:
                        self.agent.client = self._build_llm(args)
                        self.config.default_model = args
                        console.print(f"[green]Switched to model: {args}[/green]")
                    except ValueError as e:
                        console.print(f"[red]{e}[/red]")
                else:
                    console.print(f"[dim]Current model: {self.config.default_model}[/dim]")
                    console.print("\nAvailable models:")
                    for model in LLM.list_models():
                        console.print(f"  - {model}")
            elif cmd == "/config":
                config_dict = self.config.to_dict()
                console.print(Panel(
                    "\n".join(f"{k}: {v}" for k, v in config_dict.items()),
                    title="Configuration",
                    border_style="blue"
                ))
            elif cmd == "/log":
                console.print(f"[dim]Session logs: {self.logger.get_log_path()}[/dim]")
            else:
                console.print(f"[red]Unknown command: {cmd}[/red]")
                console.print("[dim]Type /help for available commands[/dim]")

        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")

    def send(self, message: str) -> None:
        """Stream one reply; Ctrl-C aborts it.

        Args:
            message: User message
        """
        request = ChatRequest(
            workspace_root=str(self.project_root),
            epic_id=self.epic_id,
            command_type=self.command_type,
            message=message,
            history=list(self.history),
            registered_projects=self.config.projects,
        )

        turn = self.loop.create_task(self.agent.chat(request))
        try:
            final_text = self.loop.run_until_complete(turn)
        except KeyboardInterrupt:
            self.agent.abort(request.workspace_root, request.epic_id)
            turn.cancel()
            self.loop.run_until_complete(asyncio.gather(turn, return_exceptions=True))
            console.print("\n[dim]Response aborted[/dim]")
            return

        if final_text is not None:
            self.history.extend([
                ChatMessage(role="user", content=message),
                ChatMessage(role="assistant", content=final_text),
            ])

    def show_help(self) -> None:
        """Show help message."""
        help_text = """
**Available Commands:**

- `/interview [message]` - Switch to requirements interview mode
- `/review [message]` - Switch to epic review mode
- `/chat [message]` - Switch to free-form chat mode
- `/learn <text>` - Record a project learning
- `/clear` - Forget the conversation so far
- `/model [name]` - Show or switch LLM model
- `/config` - Show current configuration
- `/log` - Show session log path
- `/help` - Show this help message
- `/quit` - Exit epicchat

Press Ctrl-C while a reply is streaming to abort it.

**Examples:**

```
/interview What about auth?
/review
/learn Decision: tasks are stored as one JSON file each
```
        """
        console.print(Markdown(help_text))


@app.command()
def main(
    epic_id: str = typer.Argument(..., help="Epic identifier (e.g., fn-1)"),
    path: Optional[str] = typer.Argument(
        None,
        help="Workspace path (default: current directory)"
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model", "-m",
        help="Model to use (e.g., anthropic:claude-sonnet-4-5)"
    ),
    command: CommandType = typer.Option(
        CommandType.CHAT,
        "--command", "-c",
        help="Initial command mode"
    ),
) -> None:
    """Start an epicchat session for an epic."""
    project_root = Path(path).resolve() if path else Path.cwd()

    if not project_root.exists():
        console.print(f"[red]Error: Path does not exist: {project_root}[/red]")
        sys.exit(1)

    if not project_root.is_dir():
        console.print(f"[red]Error: Path is not a directory: {project_root}[/red]")
        sys.exit(1)

    try:
        config = Config.load(project_root)
    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)

    if model:
        config.default_model = model

    errors = config.validate()
    if errors:
        console.print("[red]Configuration errors:[/red]")
        for error in errors:
            console.print(f"  - {error}")
        sys.exit(1)

    try:
        repl = REPL(project_root, epic_id, config, command)
        repl.start()
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    app()
