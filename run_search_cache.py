"""
Runner for the search keyword write-back cache.

Boots the service against REDIS_URL / DATABASE_URL, warms the live ranking
from durable storage, replays search terms (one per line, from a file or
stdin), forces both reconciliation modes once and prints a summary.

With ``--serve`` the two periodic reconciliation loops keep running until
Ctrl-C.
"""
import argparse
import logging
import sys
import time

from src.config.settings import LOG_LEVEL

# ---------------------------------------------------------------------------
# Setup logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("run_search_cache")

# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------
parser = argparse.ArgumentParser(description="Replay searches through the write-back cache.")
parser.add_argument("terms_file", nargs="?", help="File with one search term per line (default: stdin)")
parser.add_argument("--serve", action="store_true", help="Keep the reconciliation loops running")
args = parser.parse_args()

# ---------------------------------------------------------------------------
# Build the service
# ---------------------------------------------------------------------------
from src.livecache.redis_client import build_redis_client, ping
from src.persistence.gateway import SqlAlchemyGateway
from src.service.search_service import SearchService

redis_client = build_redis_client()
if not ping(redis_client):
    logger.error("Redis is not reachable; live reads will come back empty")

service = SearchService(redis_client, SqlAlchemyGateway.from_url())
warmed = service.start()
logger.info("Warmed %d keywords", warmed)

# ---------------------------------------------------------------------------
# Replay searches
# ---------------------------------------------------------------------------
if args.terms_file:
    with open(args.terms_file, encoding="utf-8") as f:
        lines = f.read().splitlines()
elif not sys.stdin.isatty():
    lines = sys.stdin.read().splitlines()
else:
    lines = []

for line in lines:
    service.process_search(line.strip())
logger.info("Replayed %d search events", len(lines))

# ---------------------------------------------------------------------------
# Force one cycle of each reconciliation mode
# ---------------------------------------------------------------------------
dirty_report = service.dirty_resync()
full_report = service.full_resync()

status = service.get_status()
stats = service.get_statistics()

print("\n" + "=" * 70)
print("SEARCH CACHE — SUMMARY")
print("=" * 70)
print(f"Live keywords      : {status.popular_count}")
print(f"Durable keywords   : {stats.total_keywords}")
print("\nTop 10:")
for entry in status.popular[:10]:
    print(f"  {entry.term:30s} {entry.score:10.0f}")
print(f"\nRecent ({status.recent_count}): {', '.join(status.recent)}")
for report in (dirty_report, full_report):
    print(
        f"\n{report.mode:5s} resync: snapshot={report.snapshot_size} created={report.created} "
        f"updated={report.updated} unchanged={report.unchanged} skipped={report.skipped}"
        + (f" error={report.error}" if report.error else "")
    )
print("=" * 70 + "\n")

if args.serve:
    logger.info("Serving; Ctrl-C to stop")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass

service.stop(timeout=5)
