"""Drop 状态扫描本地执行脚本"""

import argparse
import logging
from dropstore.db.session import SessionLocal
from dropstore.services.drop_service import DropService

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def run_sweep(dry_run: bool = False) -> int:
    """执行一次 Drop 状态扫描

    Args:
        dry_run: 是否为试运行模式（只统计待迁移的 Drop，不写库）
    """
    db = SessionLocal()
    try:
        service = DropService(db)
        if dry_run:
            plan = service.plan_status_transitions()
            for drop in plan.to_activate:
                logger.info(f"待激活: drop_id={drop.id}, name={drop.name}")
            for drop in plan.to_end:
                logger.info(f"待结束: drop_id={drop.id}, name={drop.name}")
            logger.info(f"试运行模式：发现 {plan.total} 个 Drop 待迁移")
            return plan.total

        count = service.update_statuses_automatically()
        logger.info(f"扫描完成：更新 {count} 个 Drop")
        return count

    except Exception as e:
        logger.error(f"扫描执行失败: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()

def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(description='Drop 状态扫描工具')
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='试运行模式，只统计不更新'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        result = run_sweep(args.dry_run)
        if args.dry_run:
            print(f"📊 试运行结果：{result} 个 Drop 待迁移")
        else:
            print(f"✅ 扫描完成：更新了 {result} 个 Drop")
    except Exception as e:
        print(f"❌ 执行失败: {str(e)}")
        return 1

    return 0

if __name__ == "__main__":
    exit(main())
