"""
Sample trips - served when the document store is unreachable or empty
so the app stays usable without credentials.
"""
import copy
from datetime import datetime, timezone

from TripData import Block, BlockCategory, Budget, Day, Trip, TripStatus

SAMPLE_USER_ID = "demo-user"

_NOW = datetime.now(timezone.utc).isoformat()


def _block(trip_id, day_id, block_id, start, end, title, category, lat, lng, memo=None, address=None):
    return Block(
        id=block_id,
        trip_id=trip_id,
        day_id=day_id,
        start_time=start,
        end_time=end,
        title=title,
        memo=memo,
        category=category,
        lat=lat,
        lng=lng,
        address=address,
    )


def _seoul_spring():
    tid = "seoul-spring"
    return Trip(
        id=tid,
        user_id=SAMPLE_USER_ID,
        title="Seoul in spring, 4 days",
        destination="Seoul, South Korea",
        start_date="2025-04-02",
        end_date="2025-04-05",
        summary="Core Seoul route for cherry blossom season",
        budget_total=1200000,
        created_at=_NOW,
        updated_at=_NOW,
        public_slug="seoul-spring",
        status=TripStatus.DRAFT,
        timezone="Asia/Seoul",
        highlights=["Bukchon Hanok Village", "Gwangjang Market food stalls", "N Seoul Tower at night"],
        days=[
            Day(
                id="seoul-spring-day1",
                trip_id=tid,
                date="2025-04-02",
                title="Gwanghwamun & Bukchon",
                blocks=[
                    _block(tid, "seoul-spring-day1", "ss-d1-b1", "09:30", "11:00",
                           "Gyeongbokgung Palace walk", BlockCategory.MORNING,
                           37.579617, 126.977041, memo="Rent a hanbok before entering",
                           address="161 Sajik-ro, Jongno-gu, Seoul"),
                    _block(tid, "seoul-spring-day1", "ss-d1-b2", "12:30", "14:00",
                           "Gwangjang Market", BlockCategory.LUNCH,
                           37.570388, 126.999495, memo="Mayak gimbap & bindaetteok",
                           address="88 Changgyeonggung-ro, Jongno-gu, Seoul"),
                ],
            ),
            Day(
                id="seoul-spring-day2",
                trip_id=tid,
                date="2025-04-03",
                title="Namsan & Myeongdong",
                blocks=[
                    _block(tid, "seoul-spring-day2", "ss-d2-b1", "10:00", "12:00",
                           "N Seoul Tower view", BlockCategory.MORNING,
                           37.5511694, 126.9882266, memo="Take the cable car"),
                    _block(tid, "seoul-spring-day2", "ss-d2-b2", "13:00", "14:00",
                           "Myeongdong shopping", BlockCategory.AFTERNOON,
                           37.563617, 126.982108),
                ],
            ),
        ],
        budget=Budget(lodging_per_night=130000, daily_food=60000, transport=40000, etc=30000),
    )


def _jeju_summer():
    return Trip(
        id="jeju-summer",
        user_id=SAMPLE_USER_ID,
        title="Jeju summer break",
        destination="Jeju, South Korea",
        start_date="2025-07-11",
        end_date="2025-07-15",
        summary="Beaches and coastal drives",
        created_at=_NOW,
        updated_at=_NOW,
        public_slug="jeju-summer",
        status=TripStatus.SCHEDULED,
        highlights=["Hyeopjae Beach", "Udo island loop", "Black pork dinner"],
        budget=Budget(lodging_per_night=150000, daily_food=70000, transport=50000, etc=40000),
    )


def _tokyo_fall():
    return Trip(
        id="tokyo-fall",
        user_id=SAMPLE_USER_ID,
        title="Tokyo autumn leaves",
        destination="Tokyo, Japan",
        start_date="2025-10-03",
        end_date="2025-10-07",
        summary="City foliage and cafe hopping",
        created_at=_NOW,
        updated_at=_NOW,
        public_slug="tokyo-fall",
        status=TripStatus.COMPLETED,
        highlights=["Meiji Jingu", "Shimokitazawa cafes", "Tokyo Tower"],
    )


def _taipei_foodie():
    tid = "taipei-foodie"
    return Trip(
        id=tid,
        user_id=SAMPLE_USER_ID,
        title="Taipei food tour",
        destination="Taipei, Taiwan",
        start_date="2025-05-12",
        end_date="2025-05-16",
        summary="Night markets and day trips",
        created_at=_NOW,
        updated_at=_NOW,
        public_slug="taipei-foodie",
        status=TripStatus.SCHEDULED,
        timezone="Asia/Taipei",
        highlights=["Yongkang Street dim sum", "Jiufen & Shifen day trip", "Longshan Temple at night"],
        notes=[
            "Day 1: Longshan Temple, then dim sum on Yongkang Street",
            "Day 2: Jiufen & Shifen day trip",
            "Day 3: National Palace Museum, Michelin night market tour",
        ],
        days=[
            Day(
                id="taipei-day1",
                trip_id=tid,
                date="2025-05-12",
                title="Longshan Temple & Yongkang Street",
                blocks=[
                    _block(tid, "taipei-day1", "tp-d1-b1", "09:00", "10:30",
                           "Longshan Temple", BlockCategory.MORNING,
                           25.0375167, 121.4995493, memo="Prayers & photos"),
                    _block(tid, "taipei-day1", "tp-d1-b2", "12:30", "13:30",
                           "Din Tai Fung Yongkang", BlockCategory.LUNCH,
                           25.033986, 121.529411, memo="Expect a queue for xiaolongbao"),
                ],
            ),
            Day(
                id="taipei-day2",
                trip_id=tid,
                date="2025-05-13",
                title="Jiufen & Shifen",
                blocks=[
                    _block(tid, "taipei-day2", "tp-d2-b1", "10:00", "12:00",
                           "Jiufen Old Street", BlockCategory.MORNING,
                           25.10987, 121.845, memo="Go by bus"),
                    _block(tid, "taipei-day2", "tp-d2-b2", "15:00", "16:00",
                           "Shifen sky lanterns", BlockCategory.AFTERNOON,
                           25.04986, 121.77579, memo="Plan B if it rains"),
                ],
            ),
        ],
        budget=Budget(lodging_per_night=110000, daily_food=65000, transport=50000, etc=30000),
    )


_SAMPLE_TRIPS = [_seoul_spring(), _jeju_summer(), _tokyo_fall()]
_SAMPLE_DETAIL = _taipei_foodie()


def sample_trips():
    """Fresh copies of the sample trip list."""
    return copy.deepcopy(_SAMPLE_TRIPS)


def sample_detail():
    """The trip shown when nothing is selected."""
    return copy.deepcopy(_SAMPLE_DETAIL)


def find_sample(slug):
    """Sample trip whose public slug or id equals *slug*, else None."""
    for trip in _SAMPLE_TRIPS + [_SAMPLE_DETAIL]:
        if trip.public_slug == slug or trip.id == slug:
            return copy.deepcopy(trip)
    return None
