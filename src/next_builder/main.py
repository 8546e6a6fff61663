#!/usr/bin/env python3
"""
NextJS Builder command line.

    next-builder generate "<requirements>" -o apps/todo
    next-builder repair apps/todo
    next-builder validate apps/todo
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .build_validator import BuildValidator, NpmBuildRunner
from .config import Settings, load_settings
from .errors import ConfigError, LLMError, ParseError
from .fixers import FixerRegistry
from .generator import TaskBasedGenerator
from .llm_client import LLMClient
from .materializer import FileMaterializer, read_tree
from .orchestrator import RepairOrchestrator, RepairResult
from .repair_logger import RepairLogger
from .validators import run_validators


def build_orchestrator(project_dir: str, settings: Settings, skip_build: bool = False) -> RepairOrchestrator:
    build_validator = None
    if not skip_build:
        runner = NpmBuildRunner(project_dir, command=settings.build_command, timeout=settings.build_timeout)
        build_validator = BuildValidator(runner)

    return RepairOrchestrator(
        build_validator=build_validator,
        registry=FixerRegistry(),
        max_cycles=settings.max_cycles,
        repair_logger=RepairLogger(str(Path(project_dir) / settings.log_file)),
        parallel_validation=settings.parallel_validation,
    )


def report(result: RepairResult) -> int:
    print("\n📊 Repair summary:")
    for summary in result.summaries():
        print(f"   • {summary}")
    for anomaly in result.anomalies:
        print(f"   ⚠️ {anomaly.path}: {anomaly.description}")

    if result.succeeded:
        print(f"\n🎉 Done in {result.cycles_used} repair cycle(s)")
        return 0

    print(f"\n❌ Failed: {result.failure_reason}")
    for issue in result.unresolved:
        print(f"   - {issue}")
    return 1


def command_generate(args, settings: Settings) -> int:
    llm_client = LLMClient.from_settings(settings)
    if not llm_client.available:
        print("❌ No LLM provider configured. Set ANTHROPIC_API_KEY, OPENAI_API_KEY or OPENROUTER_API_KEY.")
        return 1

    project_dir = args.output
    base = read_tree(project_dir)
    if len(base):
        print(f"📁 Using {len(base)} existing file(s) in {project_dir}")

    generator = TaskBasedGenerator(llm_client)
    orchestrator = build_orchestrator(project_dir, settings, args.no_build)
    try:
        result = orchestrator.run(generator.generate(args.requirements), base=base)
    except (LLMError, ParseError) as e:
        print(f"❌ Could not plan the app: {e}")
        return 1

    FileMaterializer(project_dir).materialize_all(result.file_set)
    for task in generator.failed_tasks:
        print(f"⚠️ Task not generated: {task.name}")
    return report(result)


def command_repair(args, settings: Settings) -> int:
    base = read_tree(args.directory)
    if not len(base):
        print(f"❌ No project files found in {args.directory}")
        return 1

    print(f"🔧 Repairing {len(base)} file(s) in {args.directory}")
    orchestrator = build_orchestrator(args.directory, settings, args.no_build)
    result = orchestrator.run([], base=base)
    FileMaterializer(args.directory).materialize_all(result.file_set)
    return report(result)


def command_validate(args, settings: Settings) -> int:
    file_set = read_tree(args.directory)
    issues = run_validators(file_set, parallel=settings.parallel_validation)
    if not issues:
        print(f"✅ No structural issues in {len(file_set)} file(s)")
        return 0

    print(f"⚠️ Found {len(issues)} structural issue(s):")
    for issue in issues:
        print(f"   - {issue}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='NextJS App Builder with validation and automatic repair')
    parser.add_argument('--env-file', type=str, help='Path to a .env file')
    parser.add_argument('--max-cycles', type=int, help='Repair cycle budget for the session')
    subparsers = parser.add_subparsers(dest='command', required=True)

    generate = subparsers.add_parser('generate', help='Generate a new app from requirements')
    generate.add_argument('requirements', type=str, help='App requirements / idea description')
    generate.add_argument('-o', '--output', type=str, required=True, help='Project directory')
    generate.add_argument('--no-build', action='store_true', help='Skip the build step')

    repair = subparsers.add_parser('repair', help='Validate, fix and build an existing app')
    repair.add_argument('directory', type=str, help='Project directory')
    repair.add_argument('--no-build', action='store_true', help='Skip the build step')

    validate = subparsers.add_parser('validate', help='Report structural issues without fixing them')
    validate.add_argument('directory', type=str, help='Project directory')

    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        return 1
    if args.max_cycles:
        settings.max_cycles = args.max_cycles

    commands = {
        'generate': command_generate,
        'repair': command_repair,
        'validate': command_validate,
    }
    try:
        return commands[args.command](args, settings)
    except KeyboardInterrupt:
        print("\n👋 Interrupted")
        return 1


if __name__ == '__main__':
    sys.exit(main())
