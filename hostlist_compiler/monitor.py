# -*- coding: utf-8 -*-
"""资源监控"""

import os
import time
import logging

import psutil

logger = logging.getLogger(__name__)


class ResourceMonitor:
    """资源监控器"""

    def __init__(self):
        self.start_time = time.time()
        self.peak_memory = 0.0
        self._process = psutil.Process(os.getpid())

    def sample(self) -> float:
        """当前常驻内存 (MB)，同时更新峰值"""
        memory_mb = self._process.memory_info().rss / 1024 / 1024
        self.peak_memory = max(self.peak_memory, memory_mb)
        return memory_mb

    @property
    def elapsed(self) -> float:
        return time.time() - self.start_time

    def log_resource_usage(self):
        """记录资源使用情况"""
        memory_mb = self.sample()
        cpu_percent = self._process.cpu_percent()
        logger.info(
            f"资源使用 - 内存: {memory_mb:.1f}MB (峰值 {self.peak_memory:.1f}MB), "
            f"CPU: {cpu_percent}%, 时间: {self.elapsed:.1f}s"
        )
