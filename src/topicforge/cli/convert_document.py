"""CLI command converting one source document into DITA topics and a map."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import shutil

from dotenv import load_dotenv

from topicforge.canonical.adapters import build_default_adapters
from topicforge.canonical.models import CanonicalNode
from topicforge.config import ConverterSettings
from topicforge.emit.dita import DEFAULT_MAP_NAME, render_package
from topicforge.engine.assets import asset_key
from topicforge.engine.context import JobContext
from topicforge.engine.errors import ConversionFailed, StructuralError
from topicforge.engine.grammar import Grammar
from topicforge.engine.mapping import RuleTable, rules_from_json
from topicforge.engine.pipeline import ConversionResult, convert

logger = logging.getLogger(__name__)

_SNIFF_BYTES = 4096


class SourceFormatError(ValueError):
    pass


def _extract(path: Path) -> CanonicalNode:
    sniffed = path.read_bytes()[:_SNIFF_BYTES]
    for name, adapter in build_default_adapters().items():
        if adapter.supports(path, sniffed):
            logger.info("Reading %s with the %s adapter", path, name)
            return adapter.extract(path)
    raise SourceFormatError(f"No adapter registered for {path}")


def _build_context(args: argparse.Namespace, settings: ConverterSettings) -> JobContext:
    rules_path = Path(args.rules) if args.rules else settings.rules_path
    grammar_path = Path(args.grammar) if args.grammar else settings.grammar_path

    table = RuleTable.with_defaults()
    if rules_path is not None:
        table = RuleTable.with_defaults(rules_from_json(rules_path.read_text(encoding="utf-8")))
    grammar = Grammar.from_json(grammar_path.read_text(encoding="utf-8")) if grammar_path else None

    return JobContext.create(
        rules=table,
        grammar=grammar,
        media_dir=settings.media_dir,
        max_workers=args.max_workers or settings.max_workers,
        fail_on_error=args.fail_on_error or settings.fail_on_error,
        repair=args.repair or settings.repair,
        require_initial_heading=args.require_initial_heading or settings.require_initial_heading,
    )


def _copy_assets(result: ConversionResult, source_dir: Path, output_dir: Path) -> list[str]:
    missing: list[str] = []
    copied: set[str] = set()
    root = source_dir.resolve()
    for asset in result.assets:
        if asset.asset_path in copied:
            continue
        copied.add(asset.asset_path)

        # Only files under the input directory are copied.
        source = (root / asset_key(asset.original)).resolve()
        if not source.is_relative_to(root) or not source.is_file():
            missing.append(asset.original)
            continue
        destination = output_dir / asset.asset_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
    return missing


def _write_files(files: dict[str, bytes], output_dir: Path) -> None:
    for relative, payload in files.items():
        target = output_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Convert a document into DITA topics and a map")
    parser.add_argument("--input", required=True, help="Source HTML or canonical JSON file")
    parser.add_argument("--output", required=True, help="Output directory")
    parser.add_argument("--rules", default=None, help="JSON file with job-specific tag rules")
    parser.add_argument("--grammar", default=None, help="JSON content-model grammar")
    parser.add_argument("--max-workers", type=int, default=None, help="Workers for relocation and validation")
    parser.add_argument("--repair", action="store_true", help="Insert grammar defaults for missing content")
    parser.add_argument("--fail-on-error", action="store_true", help="Fail on error-severity issues")
    parser.add_argument(
        "--require-initial-heading",
        action="store_true",
        help="Reject content that appears before the first heading",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    try:
        settings = ConverterSettings.from_env()
    except ValueError as error:
        print(json.dumps({"input": args.input, "error": f"Configuration error: {error}"}, indent=2))
        return 1

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level),
    )

    source_path = Path(args.input)
    output_dir = Path(args.output)

    try:
        context = _build_context(args, settings)
        tree = _extract(source_path)
        result = convert(tree, context)
    except ConversionFailed as error:
        payload = {
            "input": str(source_path),
            "error": str(error),
            "diagnostics": [getattr(item, "message", str(item)) for item in error.diagnostics],
        }
        print(json.dumps(payload, ensure_ascii=True, indent=2))
        return 1
    except (StructuralError, SourceFormatError, OSError, ValueError) as error:
        logger.error("Conversion of %s failed: %s", source_path, error)
        print(json.dumps({"input": str(source_path), "error": str(error)}, ensure_ascii=True, indent=2))
        return 1

    files = render_package(result, grammar=context.grammar)
    _write_files(files, output_dir)
    missing_assets = _copy_assets(result, source_path.parent, output_dir)

    payload = {
        "input": str(source_path),
        "output": str(output_dir),
        "map": DEFAULT_MAP_NAME,
        "topic_count": len(result.topics),
        "topics": [
            {"id": topic.id, "title": topic.title_text, "variant": topic.variant.value, "path": result.topic_paths[topic.id]}
            for topic in result.topics
        ],
        "unresolved_references": [ref.original for ref in result.unresolved_references],
        "unmapped_tags": {warning.tag: warning.occurrences for warning in result.mapping_warnings},
        "empty_topics": [warning.topic_id for warning in result.topic_warnings],
        "validation_issues": [issue.to_dict() for issue in result.validation_issues],
        "repairs": len(result.repairs),
        "missing_assets": missing_assets,
    }
    print(json.dumps(payload, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
