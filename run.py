import argparse
from orderbot.utils.config import load_config
from orderbot.utils.logger import setup_logger
from orderbot.utils.submission_log import SubmissionLogger
from orderbot.utils.submission_log_sqlite import SQLiteSubmissionLogger
from orderbot.core.pipeline import OrderPipeline


def build_journal(log_cfg):
    if log_cfg.backend == "sqlite":
        return SQLiteSubmissionLogger(log_cfg.sqlite_path)
    return SubmissionLogger(log_cfg.submissions_csv_path)


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--strategy", choices=["direct", "sponsored"], default=None)
    parser.add_argument("--quantity", type=int, default=None, help="order amount in smallest token units")
    parser.add_argument("--sell", action="store_true")
    args = parser.parse_args()

    cfg = load_config(args.config)
    if args.strategy:
        cfg.execution.strategy = args.strategy
    if args.quantity is not None:
        cfg.order.quantity = args.quantity
    if args.sell:
        cfg.order.side = "sell"

    logger = setup_logger(cfg.logging.log_dir)
    journal = build_journal(cfg.logging)
    pipeline = OrderPipeline.from_config(cfg, journal=journal)

    order = cfg.order
    logger.info(
        f"Submitting {order.side} {order.quantity} of {cfg.asset_symbol(order.asset_token)} "
        f"paid in {cfg.asset_symbol(order.payment_token)} via {cfg.execution.strategy}"
    )
    result = pipeline.submit(
        asset=order.asset_token,
        payment=order.payment_token,
        side=order.side,
        quantity=order.quantity,
        kind=order.kind,
        limit_price=order.limit_price,
        tif=order.tif,
        recipient=order.recipient,
    )
    logger.info(f"tx hash: {result.receipt.tx_hash}")
    logger.info(f"Order ID: {result.created.order_id}")
    logger.info(f"Order Account: {result.created.order_account}")
    logger.info(f"Order Status: {result.status.name}")


if __name__ == "__main__":
    main()
