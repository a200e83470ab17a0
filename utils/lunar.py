"""
utils/lunar.py
--------------
Chinese lunar calendar rendering for expiry dates, shown when the
`show_lunar_date` setting is on.
"""

from datetime import tzinfo
from typing import Optional

from lunar_python import Solar

from utils.dates import to_datetime

# Years covered by the lunar tables
LUNAR_MIN_YEAR = 1901
LUNAR_MAX_YEAR = 2099

_MONTH_NAMES = (
    "", "正月", "二月", "三月", "四月", "五月", "六月",
    "七月", "八月", "九月", "十月", "冬月", "腊月",
)

_DAY_NAMES = (
    "", "初一", "初二", "初三", "初四", "初五", "初六", "初七", "初八", "初九", "初十",
    "十一", "十二", "十三", "十四", "十五", "十六", "十七", "十八", "十九", "二十",
    "廿一", "廿二", "廿三", "廿四", "廿五", "廿六", "廿七", "廿八", "廿九", "三十",
)


def lunar_date(ms: int, tz: Optional[tzinfo] = None) -> Optional[str]:
    """
    Render the local calendar day of `ms` as a lunar date, e.g. '2024年正月初一'.

    Returns:
        The lunar date, or None when the day is outside the supported years.
    """
    day = to_datetime(ms, tz).date()
    if not LUNAR_MIN_YEAR <= day.year <= LUNAR_MAX_YEAR:
        return None

    lunar = Solar.fromYmd(day.year, day.month, day.day).getLunar()
    month = lunar.getMonth()
    # Leap months are negative
    month_name = ("闰" if month < 0 else "") + _MONTH_NAMES[abs(month)]
    return f"{lunar.getYear()}年{month_name}{_DAY_NAMES[lunar.getDay()]}"
