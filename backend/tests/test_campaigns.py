import pytest

from indexcheck.models.campaign import Campaign
from indexcheck.services import campaigns as svc
from indexcheck.workers.queue import JobQueue, QueueClosed


class BrokenQueue(JobQueue):
    def enqueue_index_check(self, job):
        raise QueueClosed("queue is closed")

    def enqueue_index_check_bulk(self, jobs):
        raise QueueClosed("queue is closed")


@pytest.mark.parametrize(
    "statuses,expected",
    [
        (["NOT_FETCHED", "NOT_FETCHED"], "READY"),
        (["INDEXED", "ERROR"], "COMPLETE"),
        (["INDEXED", "NOT_FETCHED"], "RUNNING"),
    ],
)
def test_failed_enqueue_restores_derived_status(make_campaign, db, user_id, statuses, expected):
    campaign = make_campaign(statuses, status=expected)
    item_ids = [str(i.id) for i in campaign.items]

    with pytest.raises(QueueClosed):
        svc.recheck(db, BrokenQueue(), user_id, campaign.id, item_ids)

    db.expire_all()
    assert db.get(Campaign, campaign.id).status == expected


class RecordingQueue(JobQueue):
    def __init__(self):
        self.jobs = []

    def enqueue_index_check_bulk(self, jobs):
        self.jobs.extend(jobs)
        return len(self.jobs)


def test_recheck_marks_campaign_running(make_campaign, db, user_id):
    campaign = make_campaign(["INDEXED", "NOT_INDEXED", "ERROR"], status="COMPLETE")
    queue = RecordingQueue()

    assert svc.recheck(db, queue, user_id, campaign.id) == 2
    db.expire_all()
    assert db.get(Campaign, campaign.id).status == "RUNNING"
    assert {j.campaign_id for j in queue.jobs} == {str(campaign.id)}
