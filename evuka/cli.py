"""CLI entry point for the rewards application."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from .capture import ReceiptCamera, ReceiptImage, compress_image, load_image_file
from .config import load_config
from .errors import AppError
from .gamification import calculate_multiplier
from .log import configure_logging
from .pipeline import CaptureResult, CaptureSettings, ReceiptPipeline


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    configure_logging()

    parser = argparse.ArgumentParser(
        prog="evuka",
        description="eVuka Rewards: scan receipts, earn points",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the config file (TOML)",
    )

    sub = parser.add_subparsers(dest="command")

    def add_capture_flags(p: argparse.ArgumentParser) -> None:
        p.add_argument("--user", required=True, help="User ID to credit")
        p.add_argument("--ai", action="store_true", help="Use AI analysis instead of OCR")
        p.add_argument("--no-ocr", action="store_true", help="Disable OCR")
        p.add_argument(
            "--no-fraud-check", action="store_true", help="Skip the duplicate check"
        )
        p.add_argument(
            "--offline", action="store_true", help="Queue for later sync instead"
        )
        p.add_argument("--json", action="store_true", help="Print JSON output")

    # scan
    scan_parser = sub.add_parser("scan", help="Process receipt image files")
    scan_parser.add_argument("images", nargs="+", help="Receipt image files")
    add_capture_flags(scan_parser)

    # capture
    capture_parser = sub.add_parser("capture", help="Photograph a receipt and process it")
    add_capture_flags(capture_parser)

    # sync
    sync_parser = sub.add_parser("sync", help="Replay receipts captured while offline")
    sync_parser.add_argument(
        "--local",
        action="store_true",
        help="Process queued receipts locally instead of uploading them",
    )
    sync_parser.add_argument("--user", default="", help="User for records without one")

    # points
    points_parser = sub.add_parser("points", help="Show points balance and history")
    points_parser.add_argument("--user", required=True)
    points_parser.add_argument("--limit", type=int, default=10)

    # code
    code_parser = sub.add_parser("code", help="Enter a product barcode or code")
    code_parser.add_argument("code", help="EAN-13, UPC or 8-16 character code")
    code_parser.add_argument("--user", required=True, help="User ID to credit")
    code_parser.add_argument(
        "--promotion", action="store_true", help="Code is part of a promotion"
    )

    # rewards
    rewards_parser = sub.add_parser("rewards", help="Suggest rewards from recent receipts")
    rewards_parser.add_argument("--user", required=True)
    rewards_parser.add_argument("--limit", type=int, default=3)

    # shop
    shop_parser = sub.add_parser("shop", help="Compare store prices for a shopping list")
    shop_parser.add_argument(
        "items", nargs="+", help="Items, optionally with a quantity: eggs:2"
    )
    shop_parser.add_argument("--json", action="store_true", help="Print JSON output")

    # challenges
    ch_parser = sub.add_parser("challenges", help="Show today's challenges")
    ch_parser.add_argument(
        "--generate", action="store_true", help="Generate a new set for today"
    )

    # mfa
    setup_parser = sub.add_parser("mfa-setup", help="Create a TOTP secret")
    setup_parser.add_argument("--user", required=True)
    setup_parser.add_argument("--email", default=None)

    verify_parser = sub.add_parser("mfa-verify", help="Verify a TOTP code")
    verify_parser.add_argument("--user", required=True)
    verify_parser.add_argument("--code", required=True)
    verify_parser.add_argument(
        "--secret", default=None, help="Secret being set up (enables MFA when valid)"
    )

    # reset-monthly
    sub.add_parser("reset-monthly", help="Reset every user's monthly points")

    # schedule
    sub.add_parser("schedule", help="Run the scheduled jobs until interrupted")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args.config)

    try:
        match args.command:
            case "scan" | "capture":
                asyncio.run(_cmd_capture(config, args))
            case "sync":
                asyncio.run(_cmd_sync(config, args))
            case "code":
                _cmd_code(config, args)
            case "points":
                _cmd_points(config, args)
            case "rewards":
                _cmd_rewards(config, args)
            case "shop":
                _cmd_shop(args)
            case "challenges":
                _cmd_challenges(config, args)
            case "mfa-setup" | "mfa-verify" | "reset-monthly":
                _cmd_function(config, args)
            case "schedule":
                _cmd_schedule(config)
    except AppError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        sys.exit(1)


def _settings_from_args(config, args) -> CaptureSettings:
    settings = CaptureSettings.from_config(config.capture)
    if args.ai:
        settings.enable_ai = True
    if args.no_ocr:
        settings.enable_ocr = False
    if args.no_fraud_check:
        settings.enable_fraud_detection = False
    return settings


def _print_result(result: CaptureResult, as_json: bool) -> None:
    receipt = result.receipt
    if as_json:
        data = {
            "receipt_id": result.record.id,
            "store": receipt.store,
            "total": str(receipt.total),
            "date": receipt.timestamp.isoformat(),
            "items": [
                {"name": i.name, "price": str(i.price), "category": i.category}
                for i in receipt.items
            ],
            "points": result.points,
            "is_duplicate": receipt.is_duplicate,
            "duplicate_score": receipt.duplicate_score,
            "streak": result.streak,
            "new_achievements": result.new_achievements,
        }
        print(json.dumps(data, indent=2))
        return

    print(f"\n{receipt.store}  ${receipt.total}")
    for item in receipt.items:
        print(f"  {item.name:<24} ${item.price:>7}  [{item.category}]")
    if receipt.is_duplicate:
        print(
            f"  Warning: this looks like a receipt you already scanned "
            f"(similarity {receipt.duplicate_score:.0%})"
        )
    print(f"+{result.points} points")
    if result.streak:
        print(f"Streak: {result.streak} day(s)")
    for achievement in result.new_achievements:
        print(f"Achievement unlocked: {achievement}")


def _load_upload(config, path: str) -> ReceiptImage:
    image = load_image_file(path)
    if config.capture.compress_uploads:
        image = compress_image(
            image,
            max_dimension=config.capture.max_image_dimension,
            quality=config.capture.jpeg_quality,
        )
    return image


async def _cmd_capture(config, args) -> None:
    pipeline = ReceiptPipeline.from_config(config, _settings_from_args(config, args))

    if args.command == "scan":
        sources = [(_load_upload(config, path), path) for path in args.images]
    else:
        camera = ReceiptCamera(
            camera_index=config.capture.camera_index,
            save_dir=config.capture.save_dir,
        )
        print("Capturing...")
        sources = [(camera.capture(), None)]

    for image, image_url in sources:
        outcome = await pipeline.submit(
            args.user, image, online=not args.offline, image_url=image_url
        )
        if outcome.capture is not None:
            _print_result(outcome.capture, args.json)
        else:
            print(f"Saved for later sync ({outcome.offline_id})")


async def _cmd_sync(config, args) -> None:
    from .db import OfflineReceiptStore
    from .sync import SYNC_TAG, HttpReceiptSubmitter, OfflineReceiptQueue, PipelineSubmitter

    store = OfflineReceiptStore(config.database.path)
    queue = OfflineReceiptQueue(store)

    if args.local:
        submitter = PipelineSubmitter(
            ReceiptPipeline.from_config(config), default_user_id=args.user
        )
    elif config.sync.server_url:
        submitter = HttpReceiptSubmitter(
            config.sync.server_url, timeout=config.sync.timeout
        )
    else:
        print(
            "No sync server configured. Set [sync] server_url or EVUKA_SYNC_URL, "
            "or use --local.",
            file=sys.stderr,
        )
        sys.exit(1)

    try:
        result = await queue.sync(SYNC_TAG, submitter)
    finally:
        store.close()
    print(f"Synced {result.synced} receipt(s), {result.remaining} waiting")


def _cmd_code(config, args) -> None:
    from .db import ProfileStore, ReceiptStore
    from .product_codes import award_product_code, validate_product_code

    code = validate_product_code(args.code, args.user)
    receipts = ReceiptStore(config.database.path)
    profiles = ProfileStore(config.database.path)
    try:
        tx = award_product_code(receipts, code, promotion=args.promotion, profiles=profiles)
    finally:
        receipts.close()
        profiles.close()
    print(f"{code.code} ({code.type.value}): +{tx.points} points")


def _cmd_points(config, args) -> None:
    from .db import ProfileStore, ReceiptStore

    profiles = ProfileStore(config.database.path)
    receipts = ReceiptStore(config.database.path)
    try:
        profile = profiles.get_profile(args.user)
        history = receipts.get_points_history(args.user)[: args.limit]
        achievements = profiles.get_achievements(args.user)
    finally:
        profiles.close()
        receipts.close()

    if profile is None:
        print(f"No activity for {args.user} yet.")
        return

    print(f"{args.user}: {profile.total_points} points (level {profile.level})")
    print(f"  This month: {profile.monthly_points}")
    print(f"  Streak: {profile.streak_days} day(s)")
    print(f"  Bonus multiplier: x{calculate_multiplier(profile.streak_days, profile.level)}")
    if achievements:
        print(f"  Achievements: {', '.join(achievements)}")
    if history:
        print("\nRecent activity:")
        for tx in history:
            print(f"  {tx.created_at:%Y-%m-%d %H:%M}  +{tx.points:<5} {tx.source.value}")


def _cmd_rewards(config, args) -> None:
    from .db import ProfileStore, ReceiptStore
    from .gamification import DEFAULT_REWARDS, recommend_rewards

    profiles = ProfileStore(config.database.path)
    receipts = ReceiptStore(config.database.path)
    try:
        profile = profiles.get_profile(args.user)
        recent = receipts.get_receipts(args.user, limit=50)
    finally:
        profiles.close()
        receipts.close()

    balance = profile.total_points if profile else 0
    print(f"Suggested rewards for {args.user} ({balance} points):")
    for reward in recommend_rewards(recent, DEFAULT_REWARDS, limit=args.limit):
        status = "available" if reward.points_cost <= balance else "keep earning"
        print(f"  {reward.title:<32} {reward.points_cost:>6} pts  [{status}]")


def _cmd_shop(args) -> None:
    from .shopping import CATEGORIES, ShoppingList

    shopping = ShoppingList()
    for entry in args.items:
        name, _, qty = entry.rpartition(":")
        if not name or not qty.isdigit():
            name, qty = entry, "1"
        shopping.add(name, int(qty))

    recommendations = shopping.recommendations()

    if args.json:
        data = [
            {
                "store": r.store,
                "total_price": round(r.total_price, 2),
                "savings": round(r.savings, 2),
                "items": [
                    {
                        "name": i.name,
                        "price": round(i.price, 2),
                        "on_sale": i.on_sale,
                        "discount": i.discount,
                    }
                    for i in r.items
                ],
            }
            for r in recommendations
        ]
        print(json.dumps(data, indent=2))
        return

    for category in CATEGORIES:
        items = shopping.by_category(category)
        if items:
            print(f"{category}: {', '.join(f'{i.name} x{i.quantity}' for i in items)}")
    print()
    for rank, rec in enumerate(recommendations, start=1):
        savings = f"  (save ${rec.savings:.2f})" if rec.savings > 0 else ""
        print(f"{rank}. {rec.store:<12} ${rec.total_price:.2f}{savings}")


def _cmd_challenges(config, args) -> None:
    from .db import ChallengeStore
    from .functions import FunctionContext, generate_daily_challenges

    if args.generate:
        ctx = FunctionContext.from_config(config)
        try:
            response = generate_daily_challenges(None, ctx)
        finally:
            ctx.close()
        if not response.ok:
            print(f"Error: {response.body['error']}", file=sys.stderr)
            sys.exit(1)
        print(response.body["message"])

    store = ChallengeStore(config.database.path)
    try:
        challenges = store.get_active()
    finally:
        store.close()

    if not challenges:
        print("No active challenges. Run with --generate to create today's set.")
        return
    for c in challenges:
        print(f"  {c.title:<16} +{c.points_reward:<4} {c.description}")


def _cmd_function(config, args) -> None:
    from .functions import FunctionContext, invoke

    match args.command:
        case "mfa-setup":
            name, payload = "generate-totp", {"userId": args.user, "email": args.email}
        case "mfa-verify":
            name = "verify-totp"
            payload = {"userId": args.user, "code": args.code, "secret": args.secret}
        case _:
            name, payload = "monthly-points-reset", {}

    ctx = FunctionContext.from_config(config)
    try:
        response = invoke(name, payload, ctx)
    finally:
        ctx.close()

    print(response.json())
    if not response.ok:
        sys.exit(1)


def _cmd_schedule(config) -> None:
    from .scheduler import RewardsScheduler

    async def run() -> None:
        scheduler = RewardsScheduler(config)
        scheduler.start()
        for job in scheduler.get_jobs():
            print(f"  {job['id']:<22} next run: {job['next_run']}")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        print("Stopped.")
