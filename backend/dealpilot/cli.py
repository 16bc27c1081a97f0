"""Command line interface for the DealPilot document assistant."""

from __future__ import annotations

import asyncio
import logging
import uuid

import click

from .config import ASSISTANT_URL, LOG_LEVEL
from .client.controller import ConversationController
from .client.errors import ConversationError
from .client.session import SessionContext
from .schemas import SaveDocumentRequest

HELP_LINE = "Type an answer, a number to pick an option, or: back, reset, save, quit"


@click.group()
@click.version_option(package_name="dealpilot", prog_name="dealpilot")
@click.option("--log-level", default=LOG_LEVEL, show_default=True, help="Python logging level")
def cli(log_level: str):
    """DealPilot: guided legal document generation for deal rooms."""
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@cli.command()
def types():
    """List the document types the assistant can draft."""
    from .ai.questions import available_document_types

    for flow in available_document_types():
        click.echo(f"{flow.display_name:<34} {flow.description}")


@cli.command("create-deal")
@click.option("--title", required=True)
@click.option("--business-name")
@click.option("--counterparty")
@click.option("--deal-type")
@click.option("--asking-price", type=float)
@click.option("--status", default="draft", show_default=True)
def create_deal(title, business_name, counterparty, deal_type, asking_price, status):
    """Create a deal in the local database and print its id."""
    from .models import Deal, SessionLocal, init_db

    init_db()
    db = SessionLocal()
    try:
        deal = Deal(
            id=str(uuid.uuid4()),
            title=title,
            business_legal_name=business_name,
            counterparty_name=counterparty,
            deal_type=deal_type,
            asking_price=asking_price,
            status=status,
        )
        db.add(deal)
        db.commit()
        click.echo(deal.id)
    finally:
        db.close()


@cli.command()
@click.option("--deal-id", required=True, help="Deal the document belongs to")
@click.option("--user-id", required=True, help="Id of the user drafting the document")
@click.option("--local", is_flag=True, help="Run the assistant in-process instead of calling the API")
@click.option("--url", default=ASSISTANT_URL, show_default=True, help="Assistant API base URL")
def chat(deal_id: str, user_id: str, local: bool, url: str):
    """Draft a document through a guided conversation."""
    context = SessionContext(user_id=user_id, deal_id=deal_id)
    if local:
        from .client.transport import DatabaseDealSource, LocalAssistantTransport
        from .models import init_db

        init_db()
        controller = ConversationController(
            context, LocalAssistantTransport(), DatabaseDealSource(), notify=_notify
        )
        api = None
    else:
        from .client.transport import HttpAssistantTransport, HttpDealSource

        api = HttpDealSource(base_url=url)
        controller = ConversationController(
            context, HttpAssistantTransport(base_url=url), api, notify=_notify
        )
    asyncio.run(_run_chat(controller, api))


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool):
    """Start the document assistant API."""
    import uvicorn

    uvicorn.run("dealpilot.main:app", host=host, port=port, reload=reload, log_level="info")


def _notify(message: str) -> None:
    click.secho(message, fg="red", err=True)


def _render(controller: ConversationController, shown: int) -> int:
    session = controller.session
    for message in session.messages[shown:]:
        if message.role == "assistant":
            click.echo()
            click.secho(message.content, fg="cyan")
    if session.error:
        click.secho(f"error: {session.error}", fg="red")
    if session.options and not session.is_complete:
        click.echo()
        for i, option in enumerate(session.options, 1):
            hint = f" - {option.description}" if option.description else ""
            click.echo(f"  {i}. {option.label}{hint}")
    if session.is_complete and session.generated_document:
        click.echo()
        click.echo(session.generated_document)
        if session.disclaimer:
            click.secho(session.disclaimer, fg="yellow")
    return len(session.messages)


async def _save(controller: ConversationController, api) -> None:
    session = controller.session
    if not session.is_complete or not session.generated_document:
        click.echo("Nothing to save yet.")
        return
    title = click.prompt("File title", default=session.state.document_type or "Document")
    fmt = click.prompt("Format", type=click.Choice(["md", "html"]), default="md")
    payload = SaveDocumentRequest(
        user_id=controller.context.user_id,
        title=title,
        content=session.generated_document,
        disclaimer=session.disclaimer,
        format=fmt,
    )
    if api is not None:
        try:
            doc = await api.save_document(controller.context.deal_id, payload)
        except ConversationError as exc:
            _notify(f"Failed to save document: {exc}")
            return
        click.echo(f"Saved {doc.storage_path}")
        return
    from .integrations.document_store import store_generated_document
    from .models import SessionLocal

    db = SessionLocal()
    try:
        doc = store_generated_document(
            db,
            deal_id=controller.context.deal_id,
            user_id=payload.user_id,
            title=payload.title,
            content=payload.content,
            disclaimer=payload.disclaimer,
            fmt=payload.format,
        )
        click.echo(f"Saved {doc.storage_path}")
    except OSError as exc:
        _notify(f"Failed to save document: {exc}")
    finally:
        db.close()


async def _run_chat(controller: ConversationController, api) -> None:
    click.echo(HELP_LINE)
    await controller.start_conversation()
    shown = _render(controller, 0)
    while True:
        text = click.prompt("\nyou", default="", show_default=False)
        command = text.strip().lower()
        if command in ("quit", "exit"):
            break
        if command == "back":
            if controller.can_go_back:
                controller.go_back()
                click.echo("(went back one step)")
                shown = _render(controller, max(0, len(controller.session.messages) - 1))
            else:
                click.echo("Nothing to undo.")
            continue
        if command == "reset":
            await controller.start_conversation()
            shown = _render(controller, 0)
            continue
        if command == "save":
            await _save(controller, api)
            continue
        if controller.session.is_complete:
            click.echo("The document is ready. Type save, reset or quit.")
            continue
        options = controller.session.options
        if command.isdigit() and 1 <= int(command) <= len(options):
            await controller.select_option(options[int(command) - 1])
        else:
            await controller.send_message(text)
        shown = _render(controller, shown + 1)


def main():
    cli()


if __name__ == "__main__":
    main()
