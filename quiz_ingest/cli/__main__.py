from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from quiz_ingest.config.loader import ConfigError, QuizIngestConfig, load_config
from quiz_ingest.errors import ConcurrentUploadError, FatalUploadError, OptionsError, PersistenceError
from quiz_ingest.logging.error_log import ErrorLogBuffer
from quiz_ingest.logging.init import log_summary, setup_logging
from quiz_ingest.models.options import UploadOptions
from quiz_ingest.models.upload_file import UploadFile
from quiz_ingest.services.merge import get_duplicate_resolver
from quiz_ingest.services.orchestrator import UploadContext, orchestrate_upload
from quiz_ingest.services.summary import render_summary_line
from quiz_ingest.services.views import collection_stats, export_csv, export_json
from quiz_ingest.storage.backup import BackupManager
from quiz_ingest.storage.repository import JsonQuestionBankRepository

"""CLI entrypoint.

Subcommands:
- upload FILE... [--options JSON] [--headers-map JSON]
- stats
- export [--format json|csv] [--output PATH]
- backups

Exit codes: 0 success (upload: no row/file errors), 2 upload completed with
row/file errors, 1 fatal (config, options, backup or persistence failure).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env (QUIZ_INGEST_CONFIG and friends) before the config is resolved."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="quiz-ingest", description="CSV quiz question bank ingestion")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=None, help="Config file (default: $QUIZ_INGEST_CONFIG or config/quiz_ingest.yml)")
    sub = p.add_subparsers(dest="command", required=True)

    up = sub.add_parser("upload", help="Ingest one or more CSV files")
    up.add_argument("files", nargs="+", type=Path)
    up.add_argument("--options", default=None, help="Options JSON: mergeStrategy, strictness, headersMap, preset, owner")
    up.add_argument("--headers-map", dest="headers_map", default=None, help="headersMap JSON, merged over options.headersMap")

    sub.add_parser("stats", help="Print question bank statistics as JSON")

    ex = sub.add_parser("export", help="Export the question bank")
    ex.add_argument("--format", choices=("json", "csv"), default="json")
    ex.add_argument("--output", type=Path, default=None, help="Write to this file instead of stdout")

    sub.add_parser("backups", help="List backup snapshots, newest first")
    return p.parse_args(argv)


def _cmd_upload(args: argparse.Namespace, cfg: QuizIngestConfig, repository: JsonQuestionBankRepository) -> int:
    logger = setup_logging()
    try:
        options = UploadOptions.from_payload(args.options, args.headers_map, defaults=cfg.defaults)
    except OptionsError as e:
        logger.error(f"options: {e}")
        return EXIT_FATAL

    try:
        files = [UploadFile.from_path(path) for path in args.files]
    except OSError as e:
        logger.error(f"cannot read upload file: {e}")
        return EXIT_FATAL

    context = UploadContext(
        collection=repository.load(),
        repository=repository,
        backup_manager=BackupManager(cfg.backups_directory),
        duplicate_resolver=get_duplicate_resolver(cfg.duplicate_policy),
        error_log=ErrorLogBuffer(cfg.logs_directory),
        header_failure_scope=cfg.header_failure_scope,
        presets=cfg.presets,
    )
    try:
        result = orchestrate_upload(files, options, context)
    except (FatalUploadError, ConcurrentUploadError) as e:
        logger.error(f"upload failed: {e}")
        return EXIT_FATAL

    for error in result.summary.errors:
        where = f"{error.file} row {error.row}" if error.row is not None else error.file
        logger.warning(f"{where}: {error.message}")

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(result).removeprefix("SUMMARY "))
    return EXIT_PARTIAL_FAILURE if result.has_errors else EXIT_SUCCESS_ALL


def _cmd_stats(repository: JsonQuestionBankRepository) -> int:
    stats = collection_stats(repository.load())
    print(json.dumps(stats, ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL


def _cmd_export(args: argparse.Namespace, repository: JsonQuestionBankRepository) -> int:
    collection = repository.load()
    text = export_csv(collection) if args.format == "csv" else export_json(collection)
    if args.output is None:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return EXIT_SUCCESS_ALL
    try:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
    except OSError as e:
        setup_logging().error(f"export: {e}")
        return EXIT_FATAL
    setup_logging().info(f"exported {len(collection)} questions -> {args.output}")
    return EXIT_SUCCESS_ALL


def _cmd_backups(cfg: QuizIngestConfig) -> int:
    for path in BackupManager(cfg.backups_directory).list_backups():
        print(path)
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an empty list from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    repository = JsonQuestionBankRepository(cfg.question_bank_path)
    try:
        if args.command == "upload":
            return _cmd_upload(args, cfg, repository)
        if args.command == "stats":
            return _cmd_stats(repository)
        if args.command == "export":
            return _cmd_export(args, repository)
        return _cmd_backups(cfg)
    except PersistenceError as e:
        logger.error(f"question bank: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
