"""Tests for domain entities (ingestion job bookkeeping)."""

from plexcaster.domain.entities import (
    AcquisitionJob,
    AudioTags,
    JobState,
    PipelineStage,
    StageOutcome,
    StageResult,
)


class TestAcquisitionJob:
    """Test AcquisitionJob helpers."""

    def test_new_job_is_pending(self) -> None:
        job = AcquisitionJob(source="https://files.example/a.zip", artist="Emperor")
        assert job.state is JobState.PENDING
        assert job.results == []
        assert job.is_url

    def test_file_id_source_is_not_url(self) -> None:
        assert not AcquisitionJob(source="BQACAgIAAxkBAAIB").is_url

    def test_record_appends_results(self) -> None:
        job = AcquisitionJob(source="x")
        job.record(StageResult(PipelineStage.ACQUISITION, StageOutcome.OK))
        job.record(StageResult(PipelineStage.EXTRACTION, StageOutcome.SKIPPED))

        assert [r.stage for r in job.results] == [
            PipelineStage.ACQUISITION,
            PipelineStage.EXTRACTION,
        ]
        assert job.results[0].ok
        assert not job.results[1].ok


class TestJobState:
    """Test terminal states."""

    def test_terminal_states(self) -> None:
        terminal = {s for s in JobState if s.is_terminal}
        assert terminal == {JobState.PUBLISHED, JobState.SKIPPED, JobState.FAILED}


class TestAudioTags:
    """Test AudioTags.has_album_info."""

    def test_album_and_year_required(self) -> None:
        assert AudioTags(album="Filosofem", year=1996).has_album_info
        assert not AudioTags(album="Filosofem").has_album_info
        assert not AudioTags(year=1996).has_album_info
