"""
Rate limiting middleware for API endpoints
"""
import time
from collections import defaultdict
from fastapi import Request, HTTPException
from typing import Dict, Optional
import logging
import redis

from app.config import settings
from app.exceptions import Unauthenticated
from app.utils.auth import decode_token

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window request limiter per client
    
    Counters live in Redis so every worker shares them. If Redis is
    unreachable at startup the limiter keeps per-process counters instead.
    """
    
    def __init__(
        self,
        requests_per_minute: int = 60,
        requests_per_hour: int = 1000,
        redis_client: Optional[redis.Redis] = None,
    ):
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        self.redis_client = redis_client
        
        # In-process storage: {client_id: [(timestamp, count)]}
        self.minute_tracker: Dict[str, list] = defaultdict(list)
        self.hour_tracker: Dict[str, list] = defaultdict(list)
    
    def _get_client_id(self, request: Request) -> str:
        """Key on the authenticated user when a valid token is present, else the IP"""
        auth_header = request.headers.get("authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token:
            try:
                return f"user:{decode_token(token).user_id}"
            except Unauthenticated:
                pass
        
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"
    
    def _cleanup_old_entries(self, tracker: Dict[str, list], window_seconds: int):
        """Remove entries older than window"""
        current_time = time.time()
        cutoff_time = current_time - window_seconds
        
        for client_id in list(tracker.keys()):
            tracker[client_id] = [
                (ts, count) for ts, count in tracker[client_id]
                if ts > cutoff_time
            ]
            
            # Remove empty entries
            if not tracker[client_id]:
                del tracker[client_id]
    
    def _count_redis(self, client_id: str, window_seconds: int, current_time: float) -> int:
        """Increment and return the client's counter for the current window"""
        window = int(current_time // window_seconds)
        key = f"ratelimit:{client_id}:{window_seconds}:{window}"
        pipe = self.redis_client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds)
        count, _ = pipe.execute()
        return int(count)
    
    def _count_local(self, client_id: str, current_time: float) -> tuple:
        """Record the request in-process and return (minute, hour) counts"""
        self._cleanup_old_entries(self.minute_tracker, 60)
        self._cleanup_old_entries(self.hour_tracker, 3600)
        
        self.minute_tracker[client_id].append((current_time, 1))
        self.hour_tracker[client_id].append((current_time, 1))
        
        minute_requests = sum(count for _, count in self.minute_tracker[client_id])
        hour_requests = sum(count for _, count in self.hour_tracker[client_id])
        return minute_requests, hour_requests
    
    def _reject(self, client_id: str, limit: int, period: str, retry_after: int):
        logger.warning(f"Rate limit exceeded ({period}): {client_id}")
        raise HTTPException(
            status_code=429,
            detail={
                "error": "rate_limit_exceeded",
                "message": f"Too many requests. Limit: {limit} requests per {period}",
                "retry_after": retry_after
            }
        )
    
    async def check_rate_limit(self, request: Request) -> None:
        """
        Check if request exceeds rate limits
        
        Raises:
            HTTPException: 429 if rate limit exceeded
        """
        client_id = self._get_client_id(request)
        current_time = time.time()
        
        minute_requests = hour_requests = None
        if self.redis_client is not None:
            try:
                minute_requests = self._count_redis(client_id, 60, current_time)
                hour_requests = self._count_redis(client_id, 3600, current_time)
            except redis.RedisError as e:
                logger.error(f"Rate limit counter error, using local counters: {str(e)}")
        
        if minute_requests is None:
            minute_requests, hour_requests = self._count_local(client_id, current_time)
        
        if minute_requests > self.requests_per_minute:
            self._reject(client_id, self.requests_per_minute, "minute", 60)
        
        if hour_requests > self.requests_per_hour:
            self._reject(client_id, self.requests_per_hour, "hour", 3600)
        
        logger.debug(f"Rate limit check passed: {client_id} (minute: {minute_requests}, hour: {hour_requests})")


def _connect_redis() -> Optional[redis.Redis]:
    if not settings.RATE_LIMIT_USE_REDIS:
        return None
    
    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5
        )
        # Test connection
        client.ping()
        logger.info("Redis connection established for rate limiting")
        return client
    except Exception as e:
        logger.warning(f"Redis connection failed: {str(e)}. Using in-process rate limits.")
        return None


# Global instance
rate_limiter = RateLimiter(
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    requests_per_hour=settings.RATE_LIMIT_PER_HOUR,
    redis_client=_connect_redis(),
)
