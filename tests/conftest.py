import pytest

from ledger.models import RawRecord


def make_record(
    teacher="田中講師",
    student="生徒A",
    start="2024/4/8 16:00",
    end="2024/4/8 17:20",
    duration="80",
    subject="数学",
    **kw,
):
    return RawRecord(
        teacher=teacher,
        student=student,
        start=start,
        end=end,
        duration=duration,
        subject=subject,
        **kw,
    )


@pytest.fixture
def rec():
    return make_record
