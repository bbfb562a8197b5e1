"""
Typer CLI for the wordwise learning core.

Commands:
    wordwise db init                  - Create database tables
    wordwise study USER WORD QUALITY  - Record one study event
    wordwise due USER                 - Words due for review
    wordwise review USER              - Learning words by first-learned period
    wordwise new USER                 - New words to learn
    wordwise quiz USER                - Generate (and optionally take) a quiz
    wordwise progress USER            - Mastery summary
    wordwise topics USER              - Progress per topic / change selection
    wordwise dashboard USER           - Daily dashboard

Usage:
    wordwise --help
    wordwise study 1 42 5
    wordwise quiz 1 --count 5 --answer mixed --take
"""

from __future__ import annotations

from datetime import datetime

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from wordwise.core.types import Answer, AnswerMode, QuestionMode
from wordwise.exceptions import WordwiseError
from wordwise.log import setup_logging

app = typer.Typer(help="wordwise CLI: spaced-repetition vocabulary scheduler")
db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Lazily built services sharing one store and one cache gateway.
    """

    def __init__(self):
        self.settings = get_settings()
        self._store = None
        self._cache = None
        self._engine = None

    @property
    def store(self):
        if self._store is None:
            from wordwise.db.repository import LearningRecordStore

            self._store = LearningRecordStore()
        return self._store

    @property
    def cache(self):
        if self._cache is None:
            from wordwise.cache import create_cache_gateway

            self._cache = create_cache_gateway(self.settings)
        return self._cache

    @property
    def engine(self):
        if self._engine is None:
            from wordwise.study.scheduler import SchedulingEngine

            self._engine = SchedulingEngine(store=self.store, cache=self.cache)
        return self._engine

    def quiz(self):
        from wordwise.study.quiz import TestGenerator

        return TestGenerator(store=self.store, engine=self.engine)

    def progress(self):
        from wordwise.study.progress import ProgressAggregator

        return ProgressAggregator(store=self.store, cache=self.cache)

    def profiles(self):
        from wordwise.study.profile import UserProfileService

        return UserProfileService(store=self.store, cache=self.cache)


def _fail(error: WordwiseError) -> None:
    rprint(f"[red]✗[/red] {error}")
    raise typer.Exit(code=1)


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


# ========================================
# Database
# ========================================


@db_app.command("init")
def db_init() -> None:
    """
    Create all tables if they don't exist.

    Safe to run multiple times (idempotent).
    """
    from wordwise.db.database import init_db

    try:
        init_db()
    except Exception as e:  # SQLAlchemy/driver errors: report and exit non-zero
        logger.error(f"Database init failed: {e}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# Study
# ========================================


@app.command("study")
def study(
    user_id: int = typer.Argument(..., help="User id"),
    vocabulary_id: int = typer.Argument(..., help="Vocabulary id"),
    quality: int = typer.Argument(..., help="0-2 hard, 3 ok, 4-5 easy"),
    response_ms: int = typer.Option(0, "--time", "-t", help="Response time in ms"),
) -> None:
    """Record a study event and show the updated learning record."""
    ctx = CLIContext()
    try:
        record = ctx.engine.process_study_event(user_id, vocabulary_id, quality, response_ms)
    except WordwiseError as e:
        _fail(e)

    rprint(
        f"[green]✓[/green] Word {record.vocabulary_id}: [bold]{record.status.value}[/bold] "
        f"(correct {record.correct_count}, incorrect {record.incorrect_count}), "
        f"next review {_fmt_date(record.next_review_date)}"
    )


@app.command("due")
def due(
    user_id: int = typer.Argument(..., help="User id"),
    limit: int = typer.Option(20, "--limit", "-n"),
    level: str | None = typer.Option(None, "--level"),
    topic_id: int | None = typer.Option(None, "--topic"),
) -> None:
    """List words due for review."""
    ctx = CLIContext()
    try:
        records = ctx.engine.words_due_for_review(user_id, limit=limit, level=level, topic_id=topic_id)
    except WordwiseError as e:
        _fail(e)

    if not records:
        rprint("[dim]Nothing due for review.[/dim]")
        return

    table = Table(title="Due for Review", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Word", style="cyan")
    table.add_column("Meaning")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Incorrect", justify="right", style="red")
    table.add_column("Due", style="yellow")
    for r in records:
        vocab = r.vocabulary
        table.add_row(
            str(r.vocabulary_id),
            vocab.word if vocab else "?",
            vocab.meaning if vocab else "",
            str(r.correct_count),
            str(r.incorrect_count),
            _fmt_date(r.next_review_date),
        )
    console.print(table)


@app.command("review")
def review(
    user_id: int = typer.Argument(..., help="User id"),
    period: str = typer.Option("all", "--period", "-p", help="today, yesterday, 7days, 30days or all"),
    limit: int = typer.Option(20, "--limit", "-n"),
    level: str | None = typer.Option(None, "--level"),
) -> None:
    """List learning words by when they were first learned."""
    ctx = CLIContext()
    try:
        records = ctx.engine.words_for_review_by_period(user_id, period=period, limit=limit, level=level)
        stats = ctx.progress().review_stats(user_id)
    except WordwiseError as e:
        _fail(e)

    rprint(
        f"Learning: [cyan]{stats.total_learning}[/cyan]  "
        f"today {stats.today} · yesterday {stats.yesterday} · "
        f"7 days {stats.last_7_days} · 30 days {stats.last_30_days}"
    )
    if not records:
        rprint("[dim]No words to review for this period.[/dim]")
        return

    table = Table(title=f"Review ({period})", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Word", style="cyan")
    table.add_column("Meaning")
    table.add_column("First learned", style="yellow")
    table.add_column("Last reviewed")
    for r in records:
        vocab = r.vocabulary
        table.add_row(
            str(r.vocabulary_id),
            vocab.word if vocab else "?",
            vocab.meaning if vocab else "",
            _fmt_date(r.first_learned_date),
            _fmt_date(r.last_reviewed_at),
        )
    console.print(table)


@app.command("new")
def new_words(
    user_id: int = typer.Argument(..., help="User id"),
    limit: int = typer.Option(10, "--limit", "-n"),
    topic_id: int | None = typer.Option(None, "--topic"),
    level: str | None = typer.Option(None, "--level"),
) -> None:
    """List words the user has never studied."""
    ctx = CLIContext()
    try:
        items = ctx.engine.new_words_for_learning(user_id, limit=limit, topic_id=topic_id, level=level)
    except WordwiseError as e:
        _fail(e)

    if not items:
        rprint("[dim]No new words left.[/dim]")
        return

    table = Table(title="New Words", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Word", style="cyan")
    table.add_column("Meaning")
    table.add_column("Level")
    table.add_column("Topic")
    for item in items:
        table.add_row(str(item.id), item.word, item.meaning, item.level, item.topic_name or "-")
    console.print(table)


@app.command("quiz")
def quiz(
    user_id: int = typer.Argument(..., help="User id"),
    count: int = typer.Option(10, "--count", "-n"),
    mode: str = typer.Option(QuestionMode.MIXED.value, "--mode", help="en2native, native2en or mixed"),
    answer_mode: str = typer.Option(AnswerMode.CHOICE.value, "--answer", help="choice, text or mixed"),
    topic_id: int | None = typer.Option(None, "--topic"),
    take: bool = typer.Option(False, "--take", help="Answer the questions and submit them"),
) -> None:
    """Generate a quiz from recently reviewed words."""
    ctx = CLIContext()
    generator = ctx.quiz()
    try:
        questions = generator.generate_test(user_id, count, mode, answer_mode, topic_id=topic_id)
    except WordwiseError as e:
        _fail(e)

    if not questions:
        rprint("[dim]Nothing to test yet - study some words first.[/dim]")
        return

    answers = []
    for number, q in enumerate(questions, start=1):
        rprint(f"\n[bold]{number}.[/bold] {q.prompt}")
        for option in q.options:
            rprint(f"   {option.id}) {option.text}")
        if not take:
            continue

        if q.answer_mode is AnswerMode.CHOICE:
            selected = typer.prompt("Your choice", type=int)
            answers.append(
                Answer(
                    vocabulary_id=q.vocabulary_id,
                    answer_mode=AnswerMode.CHOICE,
                    selected_option_id=selected,
                    correct_option_id=q.correct_option_id,
                )
            )
        else:
            text = typer.prompt("Your answer")
            answers.append(
                Answer(
                    vocabulary_id=q.vocabulary_id,
                    answer_mode=AnswerMode.TEXT,
                    text_answer=text,
                    correct_answer=q.correct_answer,
                )
            )

    if take:
        try:
            report = generator.submit_answers(user_id, answers)
        except WordwiseError as e:
            _fail(e)
        rprint(f"\n[green]✓[/green] Score: {report.correct}/{report.total} ({report.percentage}%)")


# ========================================
# Progress
# ========================================


@app.command("progress")
def progress(
    user_id: int = typer.Argument(..., help="User id"),
    topic_id: int | None = typer.Option(None, "--topic"),
    level: str | None = typer.Option(None, "--level"),
) -> None:
    """Show mastery progress."""
    ctx = CLIContext()
    try:
        summary = ctx.progress().user_progress(user_id, topic_id=topic_id, level=level)
    except WordwiseError as e:
        _fail(e)

    table = Table(title="Progress", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Learned", str(summary.total_learned))
    table.add_row("Mastered", str(summary.mastered))
    table.add_row("Learning", str(summary.learning))
    table.add_row("Difficult", str(summary.difficult))
    table.add_row("Mastery", f"{summary.mastery_percentage}%")
    console.print(table)


@app.command("topics")
def topics(
    user_id: int = typer.Argument(..., help="User id"),
    level: str | None = typer.Option(None, "--level"),
    select: str | None = typer.Option(None, "--select", help="Comma-separated topic ids to select"),
) -> None:
    """Show progress per topic, optionally replacing the selection first."""
    ctx = CLIContext()
    try:
        if select is not None:
            ids = [int(part) for part in select.split(",") if part.strip()]
            ctx.profiles().select_topics(user_id, ids)
        views = ctx.progress().topics_with_progress(user_id, level=level)
    except ValueError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    except WordwiseError as e:
        _fail(e)

    if not views:
        rprint("[dim]No active topics.[/dim]")
        return

    table = Table(title="Topics", show_header=True)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Topic", style="cyan")
    table.add_column("Selected", justify="center")
    table.add_column("Learned", justify="right")
    table.add_column("Mastered", justify="right", style="green")
    table.add_column("Difficult", justify="right", style="red")
    table.add_column("Mastery", justify="right")
    for view in views:
        table.add_row(
            str(view.topic.id),
            view.topic.name,
            "✓" if view.is_selected else "",
            str(view.progress.total_learned),
            str(view.progress.mastered),
            str(view.progress.difficult),
            f"{view.progress.mastery_percentage}%",
        )
    console.print(table)


@app.command("dashboard")
def dashboard(user_id: int = typer.Argument(..., help="User id")) -> None:
    """Show today's progress, streaks and review backlog."""
    ctx = CLIContext()
    try:
        data = ctx.progress().learning_dashboard(user_id)
    except WordwiseError as e:
        _fail(e)

    table = Table(title="Dashboard", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Today", f"{data.today.total}/{data.daily_goal} ({data.progress_percentage}%)")
    table.add_row("Learned today", str(data.today.words_learned))
    table.add_row("Reviewed today", str(data.today.words_reviewed))
    table.add_row("Streak", f"{data.current_streak} (best {data.longest_streak})")
    table.add_row("To review", str(data.words_to_review))
    table.add_row("Learned", str(data.total_learned))
    table.add_row("Mastered", str(data.mastered))
    table.add_row("Difficult", str(data.difficult))
    table.add_row("Accuracy", f"{data.accuracy}%")
    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    setup_logging()
    app()


if __name__ == "__main__":
    main()
