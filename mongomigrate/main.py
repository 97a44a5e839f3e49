#!/usr/bin/env python3
"""
Command-line entry point

    mongo-migrate setup
    mongo-migrate analyze [-s db1,db2] [-o analysis.json]
    mongo-migrate migrate [-s db1,db2] [-t target] [-c a,b] [-k c,d] [--drop-target] [--dry-run]
    mongo-migrate verify [-s db1,db2] [-t target]
"""
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from mongomigrate import __version__
from mongomigrate.analyzer import Analyzer, summarize
from mongomigrate.base import (
    ConnectionConfig,
    DeploymentType,
    MigrationOptions,
    MigrationProgress,
    MigrationStats,
    MigrationStatus,
    dump_analysis,
)
from mongomigrate.compare import DataComparator
from mongomigrate.config import (
    load_config,
    load_log_level,
    load_source_config,
    resolve_env_path,
    save_config,
)
from mongomigrate.connection import ConnectionManager
from mongomigrate.exceptions import MigrationToolError
from mongomigrate.log import setup_logging
from mongomigrate.migrator import Migrator

logger = logging.getLogger(__name__)

DEPLOYMENT_CHOICES = {
    '1': DeploymentType.STANDALONE,
    '2': DeploymentType.REPLICA_SET,
    '3': DeploymentType.SHARDED,
    '4': DeploymentType.ATLAS,
}

MAX_LISTED_ERRORS = 5


def split_list(value: Optional[str]) -> Optional[List[str]]:
    """Comma-separated argument to a list, None when empty."""
    if not value:
        return None
    items = [item.strip() for item in value.split(',') if item.strip()]
    return items or None


def format_size(size: float) -> str:
    for unit in ('B', 'KB', 'MB', 'GB'):
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} TB"


# setup

def ask(question: str, default: Optional[str] = None) -> str:
    suffix = f" [{default}]" if default else ""
    answer = input(f"{question}{suffix}: ").strip()
    return answer or (default or "")


def ask_int(question: str, default: int) -> int:
    while True:
        answer = ask(question, str(default))
        try:
            value = int(answer)
        except ValueError:
            value = 0
        if value > 0:
            return value
        print("⚠️  Please enter a positive integer")


def ask_connection(label: str) -> ConnectionConfig:
    print(f"\n🔌 {label} MongoDB")
    uri = ''
    while not uri:
        uri = ask(f"{label} MongoDB connection URI")
    print("   Deployment type: 1) standalone  2) replica set  3) sharded  4) atlas")
    deployment_type = DEPLOYMENT_CHOICES.get(ask("   Choose", '1'), DeploymentType.STANDALONE)

    replica_set = api_key = project_id = None
    if deployment_type == DeploymentType.REPLICA_SET:
        replica_set = ask(f"{label} replica set name") or None
    if deployment_type == DeploymentType.ATLAS:
        api_key = ask(f"{label} Atlas API key (optional)") or None
        if label == 'Target':
            project_id = ask("Target Atlas project ID (optional)") or None

    return ConnectionConfig(uri=uri, deployment_type=deployment_type, replica_set=replica_set,
                            api_key=api_key, project_id=project_id)


def cmd_setup(args) -> int:
    env_path = resolve_env_path(args.env_file)
    if env_path.exists():
        answer = ask(f"⚠️  {env_path} already exists. Overwrite? (y/N)", 'n')
        if answer.lower() not in ('y', 'yes'):
            print("Setup cancelled")
            return 0

    source = ask_connection('Source')
    target = ask_connection('Target')

    print("\n⚙️ Migration settings")
    options = MigrationOptions(
        batch_size=ask_int("Batch size", 1000),
        concurrency=ask_int("Concurrency", 5),
        timeout_ms=ask_int("Timeout (ms)", 30000),
    )

    path = save_config(source, target, options, env_path)
    print(f"\n✅ Configuration saved to {path}")
    return 0


# analyze

def print_analysis(databases) -> None:
    totals = summarize(databases)
    print("\n" + "=" * 50)
    print("📊 Analysis summary:")
    print(f"   🗄️  Databases: {totals['databases']}")
    print(f"   📂 Collections: {totals['collections']}")
    print(f"   📈 Documents: {totals['documents']:,}")
    print(f"   💾 Size: {format_size(totals['size'])}")

    for db in databases:
        print(f"\n🗄️  {db.name} ({len(db.collections)} collections, "
              f"{db.total_documents:,} documents, {format_size(db.total_size)})")
        for coll in sorted(db.collections, key=lambda c: c.size, reverse=True):
            print(f"      - {coll.name}: {coll.count:,} documents, {format_size(coll.size)}, "
                  f"{len(coll.indexes)} indexes")


def cmd_analyze(args) -> int:
    source = load_source_config(args.env_file)
    with ConnectionManager() as connections:
        client = connections.open(source, 'source')
        connections.source_client = client
        databases = Analyzer().analyze_databases(client, split_list(args.source_dbs))

    if args.output:
        output = Path(args.output)
        output.write_text(dump_analysis(databases), encoding='utf-8')
        print(f"✅ Analysis written to {output}")
    else:
        print_analysis(databases)
    logger.info("Analysis command completed")
    return 0


# migrate

class ProgressBar:
    """Feeds migrator progress events into a tqdm bar over all documents."""

    def __init__(self, migrator: Migrator, disable: bool = False):
        self.migrator = migrator
        self.disable = disable
        self.bar: Optional[tqdm] = None
        self._seen: Dict[Tuple[str, str], int] = {}

    def __call__(self, progress: MigrationProgress) -> None:
        if self.bar is None:
            self.bar = tqdm(total=self.migrator.stats.total_documents, unit='doc', disable=self.disable)
        key = (progress.database, progress.collection)
        delta = progress.processed_documents - self._seen.get(key, 0)
        self._seen[key] = progress.processed_documents
        self.bar.set_description(f"{progress.database}.{progress.collection} {progress.percentage}%")
        self.bar.update(delta)

    def close(self) -> None:
        if self.bar is not None:
            self.bar.close()


def build_options(args, defaults: MigrationOptions) -> MigrationOptions:
    values = defaults.model_dump()
    values.update(
        source_databases=split_list(args.source_dbs),
        target_database=args.target_db or None,
        collections=split_list(args.collections),
        skip_collections=split_list(args.skip_collections),
        drop_target=args.drop_target,
        dry_run=args.dry_run,
    )
    if args.batch_size is not None:
        values['batch_size'] = args.batch_size
    if args.concurrency is not None:
        values['concurrency'] = args.concurrency
    if args.timeout is not None:
        values['timeout_ms'] = args.timeout
    return MigrationOptions(**values)


def print_summary(stats: MigrationStats, dry_run: bool) -> None:
    if stats.errors:
        print("\n⚠️  Migration completed with errors")
        print("Errors encountered:")
        for i, error in enumerate(stats.errors[:MAX_LISTED_ERRORS], 1):
            print(f"   {i}. {error}")
        if len(stats.errors) > MAX_LISTED_ERRORS:
            print(f"   ...and {len(stats.errors) - MAX_LISTED_ERRORS} more errors. See logs for details.")
    elif stats.status == MigrationStatus.STOPPED:
        print("\n⏹️  Migration stopped")
    elif dry_run:
        print("\n✅ Dry run completed successfully")
    else:
        print("\n✅ Migration completed successfully")

    print("\n" + "=" * 50)
    print("📊 Migration summary:")
    print(f"   ⏱️  Duration: {round(stats.elapsed_time_ms / 1000)} seconds")
    print(f"   🗄️  Databases: {stats.total_databases}")
    print(f"   📂 Collections: {stats.total_collections}")
    print(f"   📈 Documents: {stats.migrated_documents}/{stats.total_documents} migrated")
    if stats.failed_documents > 0:
        print(f"   ❌ {stats.failed_documents} documents failed to migrate")


def cmd_migrate(args) -> int:
    source, target, defaults = load_config(args.env_file)
    options = build_options(args, defaults)

    with ConnectionManager(timeout_ms=options.timeout_ms) as connections:
        source_client, target_client = connections.connect(source, target)

        compatible, issues = Analyzer().validate_compatibility(source_client, target_client)
        if not compatible:
            print("⚠️  Compatibility issues detected:")
            for issue in issues:
                print(f"   - {issue}")
            if not options.dry_run:
                print("⚠️  Continuing with migration despite compatibility issues. "
                      "Use --dry-run to analyze without migrating.")

        migrator = Migrator(source_client, target_client, options)
        progress_bar = ProgressBar(migrator, disable=args.no_progress)
        migrator.add_progress_listener(progress_bar)

        def request_stop(signum, frame):
            print("\n⚠️  Interrupt received, stopping after the current batch...")
            migrator.stop()

        previous_handler = signal.signal(signal.SIGINT, request_stop)
        try:
            stats = migrator.migrate()
        finally:
            signal.signal(signal.SIGINT, previous_handler)
            progress_bar.close()

    print_summary(stats, options.dry_run)
    logger.info("Migration command completed")
    return 1 if stats.status == MigrationStatus.FAILED else 0


# verify

def cmd_verify(args) -> int:
    source, target, options = load_config(args.env_file)
    with ConnectionManager(timeout_ms=options.timeout_ms) as connections:
        source_client, target_client = connections.connect(source, target)
        comparator = DataComparator(source_client, target_client)
        results = comparator.compare_databases(split_list(args.source_dbs), args.target_db or None)
    comparator.print_results(results)
    return 1 if comparator.has_mismatches(results) else 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='mongo-migrate',
                                     description='Migrate data between MongoDB deployments')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--env-file', help='configuration file (default: .env)')
    subparsers = parser.add_subparsers(dest='command')

    setup = subparsers.add_parser('setup', help='create the configuration file interactively')
    setup.set_defaults(func=cmd_setup)

    analyze = subparsers.add_parser('analyze', help='analyze source databases')
    analyze.add_argument('-s', '--source-dbs', help='comma-separated source databases')
    analyze.add_argument('-o', '--output', help='write the analysis as JSON to this file')
    analyze.set_defaults(func=cmd_analyze)

    migrate = subparsers.add_parser('migrate', help='migrate data from source to target')
    migrate.add_argument('-s', '--source-dbs', help='comma-separated source databases')
    migrate.add_argument('-t', '--target-db', help='target database name (defaults to the source name)')
    migrate.add_argument('-c', '--collections', help='comma-separated collections to migrate')
    migrate.add_argument('-k', '--skip-collections', help='comma-separated collections to skip')
    migrate.add_argument('--drop-target', action='store_true', help='delete target documents first')
    migrate.add_argument('-b', '--batch-size', type=int, help='documents per batch (default: 1000)')
    migrate.add_argument('--concurrency', type=int, help='collections copied in parallel (default: 5)')
    migrate.add_argument('--timeout', type=int, help='driver socket timeout in ms (default: 30000)')
    migrate.add_argument('--dry-run', action='store_true', help='analyze only, write nothing')
    migrate.add_argument('--no-progress', action='store_true', help='hide the progress bar')
    migrate.set_defaults(func=cmd_migrate)

    verify = subparsers.add_parser('verify', help='compare source and target after a migration')
    verify.add_argument('-s', '--source-dbs', help='comma-separated source databases')
    verify.add_argument('-t', '--target-db', help='target database name override')
    verify.set_defaults(func=cmd_verify)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = create_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        sys.exit(1)

    if args.command != 'setup':
        setup_logging(load_log_level(args.env_file))

    try:
        code = args.func(args)
    except MigrationToolError as e:
        logger.error(f"{args.command} command failed: {e}")
        print(f"❌ {e}")
        sys.exit(1)
    except ValueError as e:
        # invalid option values rejected by the model
        print(f"❌ Invalid options: {e}")
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
