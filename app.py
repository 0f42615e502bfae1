import argparse
import asyncio
import os
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from orchestrator.pipeline_manager import PipelineManager
from single_doc_chat.exception.custom_exception import DocumentChatException, classify_error
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.document_ingestion.job import IngestionJob, JobStatus
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.file_io import save_uploaded_file

console = Console()

SAMPLE_LOG = """\
This is a sample log file for the document chat demo.

Log Entry 1: Application started successfully at 2024-01-01 10:00:00
Log Entry 2: User authentication successful for user@example.com
Log Entry 3: Database connection established
Log Entry 4: Processing request GET /api/users
Log Entry 5: Response sent with status 200
Log Entry 6: Application shutdown initiated at 2024-01-01 18:00:00

Error Log: Connection timeout occurred at 2024-01-01 15:30:00
Warning: High memory usage detected at 2024-01-01 16:45:00

The application handled 1000 requests today with 99.9% uptime.
"""

DEMO_QUESTIONS = [
    "What time did the application start?",
    "Were there any errors in the logs?",
    "How many requests were handled?",
    "What was the uptime percentage?",
]


def parse_args():
    parser = argparse.ArgumentParser(description="Chat with a single document from the terminal")
    parser.add_argument("path", nargs="?", default="data/sample.txt", help="file to ingest")
    parser.add_argument("--demo", action="store_true", help="ask the built-in demo questions and exit")
    parser.add_argument("--provider", default=None, help="embedding provider (openai, huggingface, simple)")
    parser.add_argument("--model", default=None, help="Groq chat model")
    return parser.parse_args()


def ingest(manager: PipelineManager, session: SessionState, path: Path, provider: str | None) -> IngestionJob:
    """Run the background pipeline in the foreground and return the finished job."""
    # the runner owns the stored copy and deletes it on failure
    stored = save_uploaded_file(path.name, path.read_bytes(), Path(os.getenv("UPLOAD_DIR", "uploads")))
    pipeline = manager.get_pipeline(provider)
    job = IngestionJob(filename=path.name)
    session.start_job(job)
    asyncio.run(manager.build_runner(session).run(job, stored, pipeline))
    return job


def print_answer(result: dict):
    console.print("\n[bold green]Assistant:[/bold green]")
    console.print(Markdown(result["answer"] or "`<no content>`"))
    console.print(f"\n[bold cyan]Sources:[/bold cyan] {len(result['sources'])} chunks referenced")
    for i, source in enumerate(result["sources"][:5], start=1):
        console.print(f"   {i}. {source['source']} (chunk {source['chunkIndex']}): {source['contentPreview']}")


def print_error(error: DocumentChatException):
    log.error("Request failed | kind=%s | error=%s", error.kind, error.describe())
    console.print(f"[bold red]Error:[/bold red] {classify_error(error)['message']}")


def answer(engine, question: str, document) -> bool:
    """Ask one question and print the result. Returns False if it failed."""
    try:
        print_answer(engine.ask(question, document))
        return True
    except DocumentChatException as e:
        print_error(e)
        return False


def main():
    args = parse_args()
    path = Path(args.path)

    if not path.exists():
        console.print(f"[yellow]Creating sample file at {path}[/yellow]")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(SAMPLE_LOG, encoding="utf-8")

    console.print("[bold cyan]Initializing pipeline...[/bold cyan]")
    session = SessionState()
    try:
        manager = PipelineManager()
        job = ingest(manager, session, path, args.provider)
    except DocumentChatException as e:
        print_error(e)
        return

    if job.status != JobStatus.COMPLETED:
        console.print(f"[red]Ingestion failed:[/red] {job.error}")
        return

    console.print(f"[green]Loaded {job.result['chunks']} chunks in {job.result['processingTime']}s[/green]\n")

    document = session.document
    try:
        engine = manager.get_query_engine(document.embedding_provider, args.model)
    except DocumentChatException as e:
        print_error(e)
        return

    if args.demo:
        for question in DEMO_QUESTIONS:
            console.print("\n" + "-" * 60)
            console.print(f"[bold magenta]Q:[/bold magenta] {question}")
            answer(engine, question, document)
        return

    # ===========================================================
    # CHAT LOOP
    # ===========================================================
    while True:
        user_input = console.input("[bold magenta]You:[/bold magenta] ")

        if user_input.lower() in ["exit", "quit", "bye"]:
            console.print("[yellow]Exiting chat. Goodbye![/yellow]")
            break
        if not user_input.strip():
            continue

        answer(engine, user_input, document)
        console.print("\n" + "-" * 60 + "\n")


if __name__ == "__main__":
    main()
