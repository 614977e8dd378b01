from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional
import typer
from rich.console import Console

from .bootstrap import build_app
from .core.events import StreamEvent

app = typer.Typer(add_completion=False)
console = Console(highlight=False)

DEFAULT_CONFIG = Path("config/default.yaml")


@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Python logging level")):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_event(event: StreamEvent) -> None:
    console.print(event.text, end="", style="dim italic" if event.is_reasoning else None,
                  markup=False, soft_wrap=True)


@app.command()
def chat(
    config: Path = DEFAULT_CONFIG,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    search: Optional[bool] = typer.Option(None, "--search/--no-search"),
):
    """Interactive chat in the terminal."""
    ctx = build_app(config)
    store, session, catalog = ctx["store"], ctx["session"], ctx["catalog"]

    if provider or model:
        store.select((provider or store.selected_provider).lower(), model or store.selected_model)
    if search is not None:
        session.search_enabled = search

    print(f"chatdeck ({store.selected_provider}/{store.selected_model}). Type /help for commands. Ctrl+C to quit.")
    while True:
        try:
            user_input = input("you> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye.")
            return

        if not user_input:
            continue

        if user_input in ("/exit", "/quit"):
            print("Bye.")
            return

        if user_input == "/help":
            print("Commands: /help, /new, /id, /models, /exit, /quit")
            continue

        if user_input == "/new":
            print(store.create_chat()["id"])
            continue

        if user_input == "/id":
            print(store.current_chat_id)
            continue

        if user_input == "/models":
            for name, models in catalog.all_models().items():
                print(f"{name}: {', '.join(m.id for m in models) or '-'}")
            continue

        # Normal turn
        streamed = []

        def on_event(event: StreamEvent) -> None:
            streamed.append(event)
            _print_event(event)

        outcome = session.send(user_input, on_event=on_event)
        content = outcome["message"]["content"]
        if streamed:
            print("")
        if not streamed or content.startswith("Error: "):
            print(content)
        if outcome["artifact"]:
            art = outcome["artifact"]
            print(f"[artifact] {art['title']} ({art['type']}) id={art['id']}")


@app.command()
def models(config: Path = DEFAULT_CONFIG, refresh: bool = False):
    """List models per provider."""
    ctx = build_app(config)
    catalog = ctx["catalog"]
    listing = catalog.refresh() if refresh else catalog.all_models()
    for name, entries in listing.items():
        print(f"{name}:")
        if not entries:
            print("  (none)")
        for m in entries:
            extra = f" [{m.context_window} ctx]" if m.context_window else ""
            print(f"  {m.id}{extra}")


@app.command()
def serve(
    config: Path = DEFAULT_CONFIG,
    host: str = "127.0.0.1",
    port: int = 8000,
):
    """Run the HTTP API for the browser client."""
    from .web.app import run

    run(config=config, host=host, port=port)
