import numpy as np
import pytest

rclpy = pytest.importorskip("rclpy")
pytest.importorskip("cv_bridge")
pytest.importorskip("message_filters")

from cv_bridge import CvBridge  # noqa: E402
from rclpy.parameter import Parameter  # noqa: E402
from sensor_msgs.msg import CameraInfo  # noqa: E402

from image_equalization.equalization.equalization_config import EqualizationType  # noqa: E402
from image_equalization.equalization.equalization_utils import (  # noqa: E402
    EqualizeHistogramNode,
    camera_info_topic,
)


class FakePublisher:
    def __init__(self):
        self.published = []
        self.subscription_count = 0

    def publish(self, msg):
        self.published.append(msg)

    def get_subscription_count(self):
        return self.subscription_count


@pytest.fixture
def node():
    rclpy.init()
    equalize_node = EqualizeHistogramNode(
        parameter_overrides=[Parameter("use_opencl", value=False)]
    )
    equalize_node.image_pub = FakePublisher()
    yield equalize_node
    equalize_node.destroy_node()
    rclpy.shutdown()


@pytest.fixture
def bridge():
    return CvBridge()


def make_image(bridge, array, encoding, frame_id="camera_frame"):
    msg = bridge.cv2_to_imgmsg(array, encoding=encoding)
    msg.header.frame_id = frame_id
    msg.header.stamp.sec = 12
    msg.header.stamp.nanosec = 345
    return msg


def color_frame():
    rng = np.random.default_rng(3)
    return rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8)


@pytest.mark.parametrize("image_topic, expected", [
    ("image", "camera_info"),
    ("/image", "/camera_info"),
    ("/camera/image_raw", "/camera/camera_info"),
    ("/stereo/left/image_rect", "/stereo/left/camera_info"),
])
def test_camera_info_topic(image_topic, expected):
    assert camera_info_topic(image_topic) == expected


def test_publishes_mono8_with_image_frame_id(node, bridge):
    node.image_callback(make_image(bridge, color_frame(), "bgr8"))

    assert len(node.image_pub.published) == 1
    out = node.image_pub.published[0]
    assert out.encoding == "mono8"
    assert out.header.frame_id == "camera_frame"
    assert (out.header.stamp.sec, out.header.stamp.nanosec) == (12, 345)
    assert bridge.imgmsg_to_cv2(out).ndim == 2


def test_camera_info_frame_id_overrides_image_frame_id(node, bridge):
    info = CameraInfo()
    info.header.frame_id = "camera_optical_frame"
    msg = make_image(bridge, color_frame(), "bgr8", frame_id="camera_frame")

    node.image_with_info_callback(msg, info)

    out = node.image_pub.published[0]
    assert out.header.frame_id == "camera_optical_frame"
    assert msg.header.frame_id == "camera_frame"


def test_unsupported_encoding_is_dropped(node, bridge):
    bgra = np.zeros((8, 8, 4), dtype=np.uint8)
    node.image_callback(make_image(bridge, bgra, "bgra8"))
    mono16 = np.zeros((8, 8), dtype=np.uint16)
    node.image_callback(make_image(bridge, mono16, "mono16"))

    assert node.image_pub.published == []

    # Still serving frames afterwards
    node.image_callback(make_image(bridge, color_frame(), "bgr8"))
    assert len(node.image_pub.published) == 1


def test_truncated_frame_is_dropped(node, bridge):
    msg = make_image(bridge, color_frame(), "bgr8")
    msg.data = bytes(msg.data)[:10]

    node.image_callback(msg)
    assert node.image_pub.published == []

    node.image_callback(make_image(bridge, color_frame(), "bgr8"))
    assert len(node.image_pub.published) == 1


def test_step_that_does_not_cover_a_row_is_dropped(node, bridge):
    msg = make_image(bridge, color_frame(), "bgr8")
    msg.step = msg.width

    assert node.do_work(msg, "camera_frame") is None
    assert node.image_pub.published == []


def test_bridge_failure_is_dropped(node, bridge, monkeypatch):
    def fail(*args, **kwargs):
        raise TypeError("buffer is too small for requested array")

    monkeypatch.setattr(node.br, "imgmsg_to_cv2", fail)
    node.image_callback(make_image(bridge, color_frame(), "bgr8"))
    assert node.image_pub.published == []


def test_debug_view_failure_still_publishes(node, bridge, monkeypatch):
    import cv2

    def no_gui(*args, **kwargs):
        raise cv2.error("The function is not implemented")

    monkeypatch.setattr(cv2, "namedWindow", no_gui)
    monkeypatch.setattr(cv2, "imshow", no_gui)
    node.debug_view = True

    node.image_callback(make_image(bridge, color_frame(), "bgr8"))
    assert len(node.image_pub.published) == 1
    assert node.debug_view is False

    node.image_callback(make_image(bridge, color_frame(), "bgr8"))
    assert len(node.image_pub.published) == 2


def test_processing_error_is_dropped(node, bridge, monkeypatch):
    import cv2

    def fail(*args, **kwargs):
        raise cv2.error("boom")

    monkeypatch.setattr(cv2, "cvtColor", fail)
    assert node.do_work(make_image(bridge, color_frame(), "bgr8"), "camera_frame") is None
    assert node.image_pub.published == []


def test_reconfigure_installs_new_snapshot(node):
    before = node.config
    result = node.set_parameters([
        Parameter("histogram_equalization_type", value="GlobalEqualize"),
        Parameter("clahe_clip_limit", value=5.0),
    ])

    assert all(r.successful for r in result)
    assert node.config is not before
    assert node.config.equalization_type is EqualizationType.GLOBAL_EQUALIZE
    assert node.config.clahe_clip_limit == 5.0


def test_reconfigure_accepts_integer_type_codes(node):
    result = node.set_parameters([Parameter("histogram_equalization_type", value=1)])
    assert result[0].successful
    assert node.config.equalization_type is EqualizationType.GLOBAL_EQUALIZE

    result = node.set_parameters([Parameter("histogram_equalization_type", value=0)])
    assert result[0].successful
    assert node.config.equalization_type is EqualizationType.ADAPTIVE_CLAHE

    result = node.set_parameters([Parameter("histogram_equalization_type", value=7)])
    assert not result[0].successful


def test_reconfigure_rejects_invalid_values(node):
    before = node.config
    result = node.set_parameters([Parameter("histogram_equalization_type", value="Median")])
    assert not result[0].successful
    assert node.config == before

    result = node.set_parameters([Parameter("clahe_tile_size_x", value=0)])
    assert not result[0].successful
    assert node.config.clahe_tile_size_x == before.clahe_tile_size_x


def test_startup_parameters_are_read_only(node):
    result = node.set_parameters([Parameter("queue_size", value=10)])
    assert not result[0].successful
    assert node.settings.queue_size == 3


def test_switching_type_changes_published_output(node, bridge):
    msg = make_image(bridge, color_frame(), "bgr8")
    node.image_callback(msg)
    node.set_parameters([Parameter("histogram_equalization_type", value="GlobalEqualize")])
    node.image_callback(msg)

    clahe_out, global_out = (bridge.imgmsg_to_cv2(m) for m in node.image_pub.published)
    assert not np.array_equal(clahe_out, global_out)


def test_subscribes_only_while_listened_to(node):
    assert not node.subscribed

    node.check_connections()
    assert not node.subscribed

    node.image_pub.subscription_count = 1
    node.check_connections()
    assert node.subscribed
    assert node.image_sub is not None
    assert node.cam_sync is None

    node.image_pub.subscription_count = 0
    node.check_connections()
    assert not node.subscribed
    assert node.image_sub is None


def test_camera_info_subscription(node):
    node.set_parameters([Parameter("use_camera_info", value=True)])
    node.image_pub.subscription_count = 1
    node.check_connections()

    assert node.subscribed
    assert node.image_sub is None
    assert node.cam_sync is not None


def test_toggling_camera_info_resubscribes(node):
    node.image_pub.subscription_count = 1
    node.check_connections()
    assert node.image_sub is not None

    node.set_parameters([Parameter("use_camera_info", value=True)])
    assert node.subscribed
    assert node.image_sub is None
    assert node.cam_sync is not None


def test_unsubscribe_is_idempotent(node):
    node.unsubscribe()
    node.subscribe()
    node.unsubscribe()
    node.unsubscribe()
    assert not node.subscribed
    assert node.cam_image_sub is None and node.cam_info_sub is None
