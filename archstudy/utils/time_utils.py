from datetime import datetime
import pytz

JST = pytz.timezone('Asia/Tokyo')

def now_iso():
    """Current UTC time as an ISO-8601 string with a Z suffix"""
    return datetime.now(pytz.UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def get_jst_time():
    """Get current time in JST"""
    return datetime.now(JST)

def parse_iso(value: str):
    """Parse a stored ISO timestamp into an aware UTC datetime"""
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)

def convert_to_jst(utc_time):
    """Convert UTC time to JST"""
    if utc_time.tzinfo is None:
        utc_time = utc_time.replace(tzinfo=pytz.UTC)
    return utc_time.astimezone(JST)

def format_time_for_display(dt):
    """Format datetime for display"""
    return dt.strftime("%Y/%m/%d %H:%M")

def to_japanese_year(year: int) -> str:
    """Gregorian year to the Japanese era label"""
    if year >= 2019:
        reiwa = year - 2018
        return f"令和{'元' if reiwa == 1 else reiwa}年"
    if year >= 1989:
        heisei = year - 1988
        return f"平成{'元' if heisei == 1 else heisei}年"
    return f"{year}年"
