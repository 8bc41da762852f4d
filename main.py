"""DeepBrief - asynchronous deep research jobs

Simple CLI for launching, polling and structuring research jobs.
"""

import argparse
import asyncio
import json
import sys

from deepbrief.config import settings
from deepbrief.models.jobs import Capability, ResearchJob, TemplateKind
from deepbrief.provider import get_provider
from deepbrief.research.context import ContextAssembler
from deepbrief.research.errors import PollTransientError, ResearchJobError
from deepbrief.research.launcher import JobLauncher
from deepbrief.research.reconciler import StatusReconciler
from deepbrief.research.structuring import ResultExtractor
from deepbrief.services.job_store import close_job_store, get_job_store


def print_job(job: ResearchJob) -> None:
    print(f"Job:      {job.id}")
    print(f"Session:  {job.session_id}")
    print(f"Template: {job.template_kind.value}")
    print(f"Task:     {job.external_task_ref}")
    print(f"Status:   {job.status.value}")
    if job.error:
        print(f"Error:    {job.error}")
    if job.raw_result:
        print(f"Output:   {len(job.raw_result.output_text)} chars, {len(job.raw_result.tool_trace)} tool calls")
    if job.structured_result is not None:
        print("Structured result stored")


async def start(session_id: str, template: str, capabilities: list[str] | None, focus_areas: list[str] | None):
    launcher = JobLauncher(get_job_store(), get_provider(), ContextAssembler())
    job = await launcher.launch(
        session_id,
        TemplateKind(template),
        capabilities=capabilities,
        focus_areas=focus_areas,
    )
    print("[+] Research job launched")
    print_job(job)


async def poll(job_id: str):
    job = await StatusReconciler(get_job_store(), get_provider()).reconcile(job_id)
    print_job(job)


async def structure(job_id: str, output: str | None):
    structured = await ResultExtractor(get_job_store(), get_provider()).structure(job_id)
    text = json.dumps(structured, indent=2, ensure_ascii=False)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"[+] Structured result written to {output}")
    else:
        print(text)


async def watch(job_id: str, interval: float, max_polls: int, then_structure: bool):
    """Reconcile a job on a fixed cadence until it is terminal or the poll budget runs out."""
    reconciler = StatusReconciler(get_job_store(), get_provider())
    job = None
    for attempt in range(1, max_polls + 1):
        try:
            job = await reconciler.reconcile(job_id)
        except PollTransientError as exc:
            print(f"[~] Poll {attempt}: provider unavailable ({exc.message}), retrying")
        else:
            print(f"[~] Poll {attempt}: {job.status.value}")
            if job.is_terminal:
                break
        await asyncio.sleep(interval)
    else:
        print(f"[!] Gave up after {max_polls} polls")
        return

    print_job(job)
    if then_structure and job.needs_structuring:
        print("\n[+] Structuring research output...")
        await structure(job_id, None)


async def run(args: argparse.Namespace):
    try:
        if args.command == "start":
            await start(args.session_id, args.template, args.capability, args.focus_area)
        elif args.command == "poll":
            await poll(args.job_id)
        elif args.command == "structure":
            await structure(args.job_id, args.output)
        elif args.command == "watch":
            await watch(args.job_id, args.interval, args.max_polls, args.structure)
    finally:
        await close_job_store()


def main():
    parser = argparse.ArgumentParser(description="DeepBrief research job orchestrator")
    sub = parser.add_subparsers(dest="command", required=True)

    p_start = sub.add_parser("start", help="Launch a background research job for a session")
    p_start.add_argument("session_id", help="Session whose artifacts feed the prompt")
    p_start.add_argument(
        "--template", "-t", choices=[k.value for k in TemplateKind], default=TemplateKind.STRATEGY.value
    )
    p_start.add_argument(
        "--capability", "-c", action="append", choices=[c.value for c in Capability],
        help="Remote tool to enable (repeatable, default: from config)",
    )
    p_start.add_argument("--focus-area", "-f", action="append", help="Research focus area (repeatable)")

    p_poll = sub.add_parser("poll", help="Reconcile a job with the provider once")
    p_poll.add_argument("job_id")

    p_structure = sub.add_parser("structure", help="Structure a completed job's research output")
    p_structure.add_argument("job_id")
    p_structure.add_argument("--output", "-o", help="Write the JSON to this file instead of stdout")

    p_watch = sub.add_parser("watch", help="Poll a job until it finishes")
    p_watch.add_argument("job_id")
    p_watch.add_argument("--interval", type=float, default=settings.watch_interval_seconds)
    p_watch.add_argument("--max-polls", type=int, default=settings.watch_max_polls)
    p_watch.add_argument("--structure", action="store_true", help="Structure the result once completed")

    args = parser.parse_args()

    try:
        asyncio.run(run(args))
    except ResearchJobError as exc:
        print(f"[!] {exc.code}: {exc.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
