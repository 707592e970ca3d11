"""Tests for the image and video generation strategies"""

import base64
import pytest

from storyqueue.generation.registry import apply_model_quirks, get_candidate_models, get_model_info
from storyqueue.generation.strategies import get_strategy
from storyqueue.generation.strategy_image import ImageStrategy
from storyqueue.generation.strategy_video import VideoStrategy, build_video_parameters
from storyqueue.schemas.envelope import JobPayload
from conftest import FakeClock, FakeImageGenerator, FakeVideoGenerator, accepted_submission, quota_submission

VEO_MODELS = [
    "veo-3.1-generate-preview",
    "veo-3.1-fast-generate-preview",
    "veo-3.0-fast-generate-001",
    "veo-2.0-generate-001",
]


def _video_strategy(generator, no_sleep, reference_fetcher, **kwargs):
    return VideoStrategy(
        generator=generator,
        candidates=kwargs.pop("candidates", VEO_MODELS),
        reference_fetcher=reference_fetcher,
        sleep=no_sleep,
        poll_interval=10,
        max_poll_attempts=36,
        **kwargs
    )


class TestRegistry:

    def test_default_video_candidates(self):
        assert get_candidate_models("video")[0] == "veo-3.1-generate-preview"

    def test_unknown_media_kind(self):
        with pytest.raises(ValueError):
            get_candidate_models("audio")

    def test_veo2_drops_resolution(self):
        params = {"aspectRatio": "16:9", "resolution": "720p", "durationSeconds": 8}
        adjusted = apply_model_quirks("veo-2.0-generate-001", params)
        assert "resolution" not in adjusted
        assert params["resolution"] == "720p"

    def test_other_models_keep_resolution(self):
        params = {"resolution": "1080p"}
        assert apply_model_quirks("veo-3.1-generate-preview", params) == params
        assert apply_model_quirks("unregistered-model", params) == params

    def test_get_model_info(self):
        assert get_model_info("veo-2.0-generate-001")["supports_resolution"] is False
        assert get_model_info("nope") is None


class TestBuildVideoParameters:

    def test_defaults(self):
        assert build_video_parameters({}) == {"aspectRatio": "16:9", "resolution": "720p", "durationSeconds": 8}

    def test_snake_and_camel_case(self):
        snake = build_video_parameters({"aspect_ratio": "9:16", "duration_seconds": 4, "negative_prompt": "blur"})
        camel = build_video_parameters({"aspectRatio": "9:16", "durationSeconds": "4", "negativePrompt": "blur"})
        assert snake == camel
        assert snake["durationSeconds"] == 4
        assert snake["negativePrompt"] == "blur"

    @pytest.mark.parametrize("params", [
        {"aspect_ratio": "4:3"},
        {"resolution": "4k"},
        {"duration_seconds": 7},
        {"duration_seconds": "long"},
    ])
    def test_invalid_values(self, params):
        with pytest.raises(ValueError):
            build_video_parameters(params)


class TestVideoStrategy:

    def test_quota_then_accept_then_done_on_fourth_poll(self, video_job, no_sleep, reference_fetcher):
        """First model is rate-limited, second accepts and finishes on the fourth poll"""
        second_op = "operations/second"
        generator = FakeVideoGenerator(
            submissions={
                VEO_MODELS[0]: quota_submission(),
                VEO_MODELS[1]: accepted_submission(second_op),
            },
            polls={second_op: ["processing", "processing", "processing", "succeed"]}
        )
        strategy = _video_strategy(generator, no_sleep, reference_fetcher)

        result = strategy.generate(JobPayload(**video_job))

        assert result["success"] is True
        assert result["status"] == "done"
        assert result["model_used"] == VEO_MODELS[1]
        assert result["data"] == b"MP4DATA"
        assert result["content_type"] == "video/mp4"
        assert [a["model_id"] for a in result["attempts"]] == VEO_MODELS[:2]
        assert result["attempts"][0]["quota_exceeded"] is True
        assert result["attempts"][0]["status"] == "failed"
        assert result["attempts"][1]["poll_attempts"] == 4
        assert result["attempts"][1]["operation_handle"] == second_op
        assert [c["model"] for c in generator.submit_calls] == VEO_MODELS[:2]
        assert len(no_sleep.calls) == 4

    def test_no_polling_for_rejected_submissions(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator(submissions={m: quota_submission() for m in VEO_MODELS})
        result = _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        assert result["success"] is False
        assert result["status"] == "failed"
        assert result["model_used"] is None
        assert len(result["attempts"]) == 4
        assert generator.query_calls == []
        assert no_sleep.calls == []

    def test_quirks_applied_per_model(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator(submissions={m: quota_submission() for m in VEO_MODELS[:3]})
        result = _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        assert result["model_used"] == "veo-2.0-generate-001"
        assert "resolution" in generator.submit_calls[0]["parameters"]
        assert "resolution" not in generator.submit_calls[3]["parameters"]

    def test_timeout_does_not_fall_back(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator(polls={f"operations/{VEO_MODELS[0]}-op": ["processing"]})
        result = _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        assert result["success"] is False
        assert result["status"] == "timed_out"
        assert result["model_used"] == VEO_MODELS[0]
        assert len(result["attempts"]) == 1
        assert result["attempts"][0]["poll_attempts"] == 36
        assert len(generator.submit_calls) == 1

    def test_failed_operation_does_not_fall_back(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator(polls={f"operations/{VEO_MODELS[0]}-op": ["processing", "failed"]})
        result = _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        assert result["status"] == "failed"
        assert len(generator.submit_calls) == 1

    def test_unrecognized_response_fails(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator(response={"somethingElse": []})
        result = _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        assert result["status"] == "failed"
        assert "No video URI" in result["error"]
        assert generator.download_calls == []

    def test_download_failure_fails(self, video_job, no_sleep, reference_fetcher):
        class BrokenDownload(FakeVideoGenerator):
            def download_video(self, video_uri):
                raise ConnectionError("reset by peer")

        result = _video_strategy(BrokenDownload(), no_sleep, reference_fetcher).generate(JobPayload(**video_job))
        assert result["status"] == "failed"
        assert "reset by peer" in result["error"]

    def test_reference_embedded_as_first_frame(self, video_job, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator()
        video_job["reference_asset_url"] = "gs://storyboard-images/sb1/scene-sc3_1.png"
        _video_strategy(generator, no_sleep, reference_fetcher).generate(JobPayload(**video_job))

        image = generator.submit_calls[0]["image"]
        assert image["bytesBase64Encoded"] == base64.b64encode(b"REFIMAGE").decode("utf-8")
        assert image["mimeType"] == "image/jpeg"
        assert reference_fetcher.calls == ["gs://storyboard-images/sb1/scene-sc3_1.png"]

    def test_top_level_producer_fields(self, no_sleep, reference_fetcher):
        generator = FakeVideoGenerator()
        job = JobPayload.model_validate({"media_kind": "video", "prompt": "p", "aspectRatio": "9:16", "durationSeconds": "6"})
        _video_strategy(generator, no_sleep, reference_fetcher).generate(job)

        parameters = generator.submit_calls[0]["parameters"]
        assert parameters["aspectRatio"] == "9:16"
        assert parameters["durationSeconds"] == 6

    def test_empty_prompt_is_permanent_error(self, no_sleep, reference_fetcher):
        strategy = _video_strategy(FakeVideoGenerator(), no_sleep, reference_fetcher)
        with pytest.raises(ValueError):
            strategy.generate(JobPayload(media_kind="video", prompt="   "))


class SlowSubmitGenerator(FakeVideoGenerator):
    """Each submission costs submit_cost seconds of clock time"""

    def __init__(self, clock, submit_cost, **kwargs):
        super().__init__(**kwargs)
        self.clock = clock
        self.submit_cost = submit_cost

    def generate_video(self, prompt, model, parameters=None, image=None):
        self.clock.advance(self.submit_cost)
        return super().generate_video(prompt, model, parameters=parameters, image=image)


class TestVideoWalltime:
    """Submissions and polling end well before the video visibility timeout"""

    def _strategy(self, generator, clock, reference_fetcher):
        return VideoStrategy(
            generator=generator,
            candidates=VEO_MODELS,
            reference_fetcher=reference_fetcher,
            sleep=clock.advance,
            poll_interval=10,
            max_poll_attempts=36,
            clock=clock
        )

    def test_default_deadline_leaves_room_to_finish(self, reference_fetcher):
        strategy = VideoStrategy(generator=FakeVideoGenerator(), reference_fetcher=reference_fetcher)
        assert strategy.deadline_seconds == 420

    def test_slow_rejections_stop_the_chain(self, video_job, reference_fetcher):
        clock = FakeClock(0.0)
        generator = SlowSubmitGenerator(clock, 150, submissions={model: quota_submission() for model in VEO_MODELS})

        result = self._strategy(generator, clock, reference_fetcher).generate(JobPayload(**video_job))

        assert result["success"] is False
        assert result["status"] == "timed_out"
        assert len(generator.submit_calls) == 3
        assert clock.now == 450

    def test_polling_stops_at_deadline(self, video_job, reference_fetcher):
        clock = FakeClock(0.0)
        generator = SlowSubmitGenerator(
            clock, 200,
            submissions={VEO_MODELS[0]: quota_submission()},
            polls={f"operations/{VEO_MODELS[1]}-op": ["processing"]}
        )

        result = self._strategy(generator, clock, reference_fetcher).generate(JobPayload(**video_job))

        assert result["status"] == "timed_out"
        assert result["model_used"] == VEO_MODELS[1]
        assert result["attempts"][-1]["poll_attempts"] == 2
        assert generator.download_calls == []
        assert clock.now <= 420


class TestImageStrategy:

    def test_generates_with_first_model(self, scene_job, reference_fetcher):
        generator = FakeImageGenerator()
        strategy = ImageStrategy(generator=generator, candidates=["img-a", "img-b"], reference_fetcher=reference_fetcher)

        result = strategy.generate(JobPayload(**scene_job))

        assert result["success"] is True
        assert result["data"] == b"PNGDATA"
        assert result["content_type"] == "image/png"
        assert result["model_used"] == "img-a"
        assert generator.calls[0]["reference"] is None
        assert reference_fetcher.calls == []

    def test_falls_back_on_quota(self, scene_job, reference_fetcher):
        generator = FakeImageGenerator(responses={
            "img-a": {"code": -1, "data": {"image_bytes": None, "quota_exceeded": True}, "message": "429"}
        })
        strategy = ImageStrategy(generator=generator, candidates=["img-a", "img-b"], reference_fetcher=reference_fetcher)

        result = strategy.generate(JobPayload(**scene_job))

        assert result["model_used"] == "img-b"
        assert result["attempts"][0]["quota_exceeded"] is True
        assert [c["model"] for c in generator.calls] == ["img-a", "img-b"]

    def test_all_models_fail(self, scene_job, reference_fetcher):
        failure = {"code": -1, "data": {"image_bytes": None, "quota_exceeded": False}, "message": "No image"}
        generator = FakeImageGenerator(responses={"img-a": failure})
        strategy = ImageStrategy(generator=generator, candidates=["img-a"], reference_fetcher=reference_fetcher)

        result = strategy.generate(JobPayload(**scene_job))
        assert result["success"] is False
        assert result["status"] == "failed"
        assert "No image" in result["error"]

    def test_edit_mode_sends_reference(self, scene_job, reference_fetcher):
        generator = FakeImageGenerator()
        scene_job.update(edit_mode=True, reference_asset_url="https://cdn.example/ref.jpg")
        ImageStrategy(generator=generator, candidates=["img-a"], reference_fetcher=reference_fetcher).generate(
            JobPayload(**scene_job)
        )
        assert generator.calls[0]["reference"] == {"data": b"REFIMAGE", "mime_type": "image/jpeg"}

    def test_edit_mode_without_reference(self, scene_job, reference_fetcher):
        scene_job["edit_mode"] = True
        strategy = ImageStrategy(generator=FakeImageGenerator(), candidates=["img-a"], reference_fetcher=reference_fetcher)
        with pytest.raises(ValueError):
            strategy.generate(JobPayload(**scene_job))

    def test_wrong_media_kind(self, video_job, reference_fetcher):
        strategy = ImageStrategy(generator=FakeImageGenerator(), candidates=["img-a"], reference_fetcher=reference_fetcher)
        with pytest.raises(ValueError):
            strategy.generate(JobPayload(**video_job))


class TestGetStrategy:

    def test_dispatch(self, reference_fetcher):
        assert isinstance(get_strategy("image", generator=FakeImageGenerator(), reference_fetcher=reference_fetcher), ImageStrategy)
        assert isinstance(get_strategy("video", generator=FakeVideoGenerator(), reference_fetcher=reference_fetcher), VideoStrategy)

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_strategy("audio")
