"""
定时任务调度器服务
使用 APScheduler 定期为待预留的库存作业重新检查可用性
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from erp.core.config import settings
from erp.db.session import SessionLocal
from erp.models import Operation, Move
from erp.models.enums import OperationState
from erp.services.inventory import RESERVABLE_MOVE_STATES, reserve_operation

logger = logging.getLogger(__name__)

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


async def reserve_pending_operations(session_factory=None) -> int:
    """
    为已确认/已分配且仍有待预留移动的作业重新预留

    Returns:
        处理的作业数量
    """
    session_factory = session_factory or SessionLocal
    processed = 0
    try:
        async with session_factory() as db:
            result = await db.execute(
                select(Operation.id)
                .join(Move, Move.operation_id == Operation.id)
                .where(Operation.state.in_([OperationState.CONFIRMED.value, OperationState.ASSIGNED.value]))
                .where(Move.state.in_(RESERVABLE_MOVE_STATES))
                .distinct()
                .order_by(Operation.id.asc())
            )
            operation_ids = [row[0] for row in result]

            for operation_id in operation_ids:
                operation = await db.get(Operation, operation_id)
                await reserve_operation(db, operation)
                processed += 1

            await db.commit()

        if processed:
            logger.info(f"⏰ 定时预留完成，处理作业 {processed} 个")
    except Exception as e:
        logger.error(f"❌ 定时预留失败: {str(e)}", exc_info=True)
    return processed


def init_scheduler():
    """初始化并启动调度器"""
    global scheduler

    if not settings.SCHEDULER_ENABLED:
        logger.info("⏰ 定时预留已禁用")
        return

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        reserve_pending_operations,
        trigger=IntervalTrigger(minutes=settings.RESERVATION_INTERVAL_MINUTES),
        id="reserve_pending_operations",
        name="库存作业定时预留",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 每 {settings.RESERVATION_INTERVAL_MINUTES} 分钟检查一次可用性")


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")


def get_scheduler_status() -> dict:
    """获取调度器状态"""
    if not scheduler:
        return {"enabled": settings.SCHEDULER_ENABLED, "running": False, "jobs": []}

    jobs = []
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        })

    return {"enabled": settings.SCHEDULER_ENABLED, "running": scheduler.running, "jobs": jobs}
