"""Unit tests for EventMapper."""
from datetime import datetime, timezone

from conftest import BUSINESS_ID, USER_ID, make_record
from processor.event_mapper import (
    EventMapper,
    build_description,
    build_location,
    pick_widest_image,
)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestEventMapper:
    """Test cases for EventMapper class."""

    def setup_method(self):
        self.mapper = EventMapper(BUSINESS_ID, USER_ID)

    def test_map_record_full_event(self):
        """Test mapping a complete record."""
        record = make_record(
            name='  Jazz Night  ',
            end_date_time='2025-06-01T22:00:00Z',
            info='An evening of jazz',
            url='https://www.ticketmaster.co.za/event/Z1',
            images=[
                {'url': 'https://img/small.jpg', 'width': 100},
                {'url': 'https://img/large.jpg', 'width': 1024},
                {'url': 'https://img/medium.jpg', 'width': 640}
            ]
        )

        row = self.mapper.map_record(record)

        assert row.title == 'Jazz Night'
        assert row.type == 'event'
        assert row.icon == 'ticketmaster'
        assert row.business_id == BUSINESS_ID
        assert row.created_by == USER_ID
        assert row.start_date == utc(2025, 6, 1, 18, 0)
        assert row.end_date == utc(2025, 6, 1, 22, 0)
        assert row.location == 'Blue Room • Cape Town • South Africa'
        assert row.description == 'An evening of jazz'
        assert row.image == 'https://img/large.jpg'
        assert row.booking_url == 'https://www.ticketmaster.co.za/event/Z1'
        assert row.price is None
        assert row.rating == 0
        assert row.booking_contact is None
        assert row.availability_status is None

    def test_start_from_local_date_is_midnight_utc(self):
        """Test a date-only start resolves to midnight UTC."""
        record = make_record(start_date_time=None, start_local_date='2025-06-01')

        row = self.mapper.map_record(record)

        assert row.start_date == utc(2025, 6, 1, 0, 0, 0)
        assert row.end_date == row.start_date

    def test_end_from_local_date_is_end_of_day(self):
        """Test a date-only end resolves to 23:59:59 UTC."""
        record = make_record(end_local_date='2025-06-03')

        row = self.mapper.map_record(record)

        assert row.end_date == utc(2025, 6, 3, 23, 59, 59)

    def test_exact_datetime_preferred_over_local_date(self):
        record = make_record(
            start_date_time='2025-06-01T17:30:00Z',
            start_local_date='2025-06-01'
        )

        row = self.mapper.map_record(record)

        assert row.start_date == utc(2025, 6, 1, 17, 30)

    def test_offset_datetime_normalized_to_utc(self):
        record = make_record(start_date_time='2025-06-01T20:00:00+02:00')

        row = self.mapper.map_record(record)

        assert row.start_date == utc(2025, 6, 1, 18, 0)

    def test_record_without_start_is_dropped(self):
        """Test that a record with no start date maps to nothing."""
        record = make_record(start_date_time=None)

        assert self.mapper.map_record(record) is None

    def test_end_before_start_is_clamped(self):
        record = make_record(end_date_time='2025-05-31T10:00:00Z')

        row = self.mapper.map_record(record)

        assert row.end_date == row.start_date

    def test_empty_title_uses_placeholder(self):
        row = self.mapper.map_record(make_record(name='   '))

        assert row.title == 'Untitled event'

    def test_malformed_record_is_dropped(self):
        """Test that an exception while mapping drops the record."""
        record = make_record(start_date_time='not-a-date')

        assert self.mapper.map_record(record) is None

    def test_sold_out_status(self):
        record = make_record()
        record['dates']['status'] = {'code': 'offsale'}

        assert self.mapper.map_record(record).availability_status == 'sold_out'

    def test_map_records_keeps_only_valid(self):
        """Test mapped count is below fetched count when records are dropped."""
        records = [
            make_record(event_id='a'),
            make_record(event_id='b', start_date_time=None),
            make_record(event_id='c', start_date_time=None, start_local_date='2025-07-01'),
            'garbage'
        ]

        rows = self.mapper.map_records(records)

        assert len(rows) == 2
        assert len(rows) < len(records)


class TestLocation:

    def test_joins_non_empty_parts(self):
        assert build_location('Blue Room', '', 'South Africa') == 'Blue Room • South Africa'

    def test_all_empty_is_none(self):
        assert build_location(None, '  ', '') is None


class TestDescription:

    def test_info_preferred(self):
        record = make_record(info=' Info text ', description='Description text')
        assert build_description(record) == 'Info text'

    def test_description_when_no_info(self):
        record = make_record(info='  ', description='Description text')
        assert build_description(record) == 'Description text'

    def test_synthesized_from_classifications_and_venue(self):
        """Test the fallback description skips generic tags."""
        record = make_record(classifications=[{
            'segment': {'name': 'Music'},
            'genre': {'name': 'Jazz'},
            'subGenre': {'name': 'Undefined'}
        }])

        assert build_description(record) == 'Music · Jazz — at Blue Room'

    def test_synthesized_from_venue_only(self):
        record = make_record(classifications=[{
            'segment': {'name': 'Other'},
            'genre': {'name': 'Undefined'}
        }])

        assert build_description(record) == 'at Blue Room'

    def test_nothing_available(self):
        record = make_record(venue=None)
        assert build_description(record) is None


class TestImage:

    def test_no_images(self):
        assert pick_widest_image([]) is None
        assert pick_widest_image(None) is None

    def test_missing_widths_keep_first(self):
        images = [{'url': 'https://img/a.jpg'}, {'url': 'https://img/b.jpg'}]
        assert pick_widest_image(images) == 'https://img/a.jpg'
