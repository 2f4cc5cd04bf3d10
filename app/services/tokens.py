"""
Человекочитаемые метки: QR-PRE-XXXXXX для предварительных одобрений,
VIS-XXXXXX для бейджей, QR-<ms> для посетителей.
Это отображаемые метки, а не криптографический материал.
"""
import threading
import time

_counter_lock = threading.Lock()
_last_counter = 0


def next_time_counter() -> int:
    """Миллисекундный счетчик, строго возрастающий в пределах процесса"""
    global _last_counter
    now_ms = int(time.time() * 1000)
    with _counter_lock:
        _last_counter = max(now_ms, _last_counter + 1)
        return _last_counter


def generate_pre_approval_code() -> str:
    return f"QR-PRE-{str(next_time_counter())[-6:]}"


def generate_badge_number() -> str:
    return f"VIS-{str(next_time_counter())[-6:]}"


def generate_visitor_qr_code() -> str:
    return f"QR-{next_time_counter()}"
