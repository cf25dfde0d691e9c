"""Advisor Chat - terminal client for the advisor proxy.

Streams assistant replies live as Markdown and can request the strategy
summary card for an onboarding profile.
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import binascii
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.prompt import Prompt
from rich.style import Style

from .api import AdvisorClient
from .conversation import GREETING, Conversation, Message
from .errors import AdvisorError, TransportError

USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

HELP_TEXT = """\
/visual   Generate the strategy summary card for the loaded profile
/clear    Start a new conversation
/help     Show this help
/quit     Exit (Ctrl+D works too)"""


def load_profile(path: Optional[Path]) -> dict[str, Any]:
    """Read an onboarding profile JSON object; missing path means empty."""

    if path is None:
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Profile file {path} must contain a JSON object")
    return data


def save_data_url(reference: str, directory: Path) -> Optional[Path]:
    """Write a base64 ``data:`` image reference to disk; other refs are skipped."""

    if not reference.startswith("data:") or "," not in reference:
        return None
    header, encoded = reference.split(",", 1)
    if ";base64" not in header:
        return None
    mime = header[len("data:") :].split(";", 1)[0]
    extension = mime.split("/", 1)[-1] if "/" in mime else "png"
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        return None
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    target = directory / f"strategie_{stamp}.{extension}"
    target.write_bytes(raw)
    return target


class AdvisorChat:
    """Terminal chat loop around :class:`AdvisorClient`."""

    def __init__(
        self,
        server_url: str,
        *,
        api_key: Optional[str] = None,
        profile: Optional[dict[str, Any]] = None,
        output_dir: Path = Path("."),
        console: Optional[Console] = None,
        client: Optional[AdvisorClient] = None,
    ) -> None:
        self.client = client or AdvisorClient(server_url, api_key=api_key)
        self.profile = profile or {}
        self.output_dir = output_dir
        self.console = console or Console()
        self.conversation = self._new_conversation()
        self.running = True

    @staticmethod
    def _new_conversation() -> Conversation:
        return Conversation([Message(role="assistant", content=GREETING)])

    def notify(self, error: AdvisorError) -> None:
        # Transport errors carry raw httpx text; show the user-facing line.
        detail = error.description if isinstance(error, TransportError) else str(error)
        self.console.print(f"[bold]{error.title}[/bold]: {detail}", style=ERROR_STYLE)

    async def send(self, text: str) -> None:
        """Stream one assistant reply, rendering every delta as it lands."""

        with Live(console=self.console, refresh_per_second=10) as live:

            def _render(conversation: Conversation) -> None:
                last = conversation.last
                if last is not None and last.role == "assistant":
                    live.update(Markdown(last.content, style=ASSISTANT_STYLE))

            unsubscribe = self.conversation.subscribe(_render)
            try:
                await self.client.send(self.conversation, text)
            except AdvisorError as exc:
                self.notify(exc)
            finally:
                unsubscribe()

    async def generate_visual(self) -> None:
        with self.console.status("Génération de la plaque visuelle..."):
            try:
                message = await self.client.generate_visual(
                    self.conversation, self.profile
                )
            except AdvisorError as exc:
                self.notify(exc)
                return

        self.console.print(message.content, style=ASSISTANT_STYLE)
        saved = save_data_url(message.image or "", self.output_dir)
        if saved is not None:
            self.console.print(f"[dim]Image enregistrée : {saved}[/dim]")
        else:
            self.console.print(f"[dim]{message.image}[/dim]")
        self.console.print("Votre synthèse visuelle est prête !", style=INFO_STYLE)

    async def handle_command(self, command: str) -> bool:
        name = command.strip().split()[0].lower()
        if name in ("/quit", "/exit"):
            self.running = False
        elif name == "/clear":
            self.conversation = self._new_conversation()
            self.console.print("[dim]Nouvelle conversation.[/dim]")
        elif name == "/visual":
            await self.generate_visual()
        elif name == "/help":
            self.console.print(HELP_TEXT, style=INFO_STYLE)
        else:
            return False
        return True

    async def run(self) -> None:
        """Main chat loop."""

        self.console.print(GREETING, style=ASSISTANT_STYLE)
        self.console.print("[dim]/help pour les commandes, Ctrl+D pour quitter[/dim]")
        try:
            while self.running:
                try:
                    user_input = await asyncio.to_thread(
                        Prompt.ask, "[bold blue]Vous[/bold blue]", console=self.console
                    )
                except EOFError:
                    self.console.print("\n[dim]Au revoir ![/dim]")
                    break
                if not user_input.strip():
                    continue
                if user_input.startswith("/") and await self.handle_command(user_input):
                    continue
                await self.send(user_input)
        finally:
            await self.client.aclose()


def main() -> None:
    """CLI entry point."""

    parser = argparse.ArgumentParser(
        description="Advisor Chat - terminal client for the advisor proxy",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("ADVISOR_SERVER", "http://localhost:8000"),
        help="Advisor proxy URL (default: http://localhost:8000 or $ADVISOR_SERVER)",
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("ADVISOR_CLIENT_KEY"),
        help="Bearer token sent to the proxy (default: $ADVISOR_CLIENT_KEY)",
    )
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="JSON file holding the onboarding profile used by /visual",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Where generated strategy cards are saved",
    )
    args = parser.parse_args()

    try:
        profile = load_profile(args.profile)
    except (OSError, ValueError) as exc:
        parser.error(str(exc))

    chat = AdvisorChat(
        args.server,
        api_key=args.api_key,
        profile=profile,
        output_dir=args.output_dir,
    )
    try:
        asyncio.run(chat.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
