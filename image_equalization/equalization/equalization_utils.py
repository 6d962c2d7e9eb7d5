# SPDX-License-Identifier: GPL-3.0-or-later

"""ROS2 node wrapping HistogramEqualizer with lazy subscription and dynamic parameters."""

from __future__ import annotations

from typing import List, Optional

import cv2
import message_filters
from cv_bridge import CvBridge, CvBridgeError
from rcl_interfaces.msg import (
    FloatingPointRange,
    IntegerRange,
    ParameterDescriptor,
    SetParametersResult,
)
from rclpy.node import Node
from rclpy.parameter import Parameter
from rclpy.qos import QoSProfile
from sensor_msgs.msg import CameraInfo, Image
from std_msgs.msg import Header

from image_equalization.equalization.equalization_algorithms import (
    GRAYSCALE_CONVERSIONS,
    HistogramEqualizer,
    check_buffer,
)
from image_equalization.equalization.equalization_config import (
    CLIP_LIMIT_MAX,
    CLIP_LIMIT_MIN,
    TILE_SIZE_MAX,
    TILE_SIZE_MIN,
    EqualizationConfig,
    EqualizationType,
    NodeSettings,
)
from image_equalization.equalization.errors import (
    MalformedFrameError,
    ProcessingError,
    UnsupportedEncodingError,
)

OPENCV_WINDOW = "Equalize Histogram Window"


def camera_info_topic(image_topic: str) -> str:
    """Sibling camera_info topic of an image topic, e.g. /cam/image_raw -> /cam/camera_info."""
    namespace, _, _ = image_topic.rpartition("/")
    if not namespace and image_topic.startswith("/"):
        return "/camera_info"
    return f"{namespace}/camera_info" if namespace else "camera_info"


class EqualizeHistogramNode(Node):
    """Subscribes to ``image`` while ``~/image`` has subscribers and publishes the equalized mono8 frames."""

    def __init__(self, node_name: str = "equalize_histogram", input_topic: str = "image",
                 output_topic: str = "~/image", **kwargs) -> None:
        super().__init__(node_name, **kwargs)

        self.input_topic = input_topic
        self.output_topic = output_topic

        # Startup parameters
        read_only = ParameterDescriptor(read_only=True)
        self.declare_parameter("queue_size", NodeSettings.queue_size, read_only)
        self.declare_parameter("debug_view", NodeSettings.debug_view, read_only)
        self.declare_parameter("use_opencl", NodeSettings.use_opencl, read_only)
        self.declare_parameter("always_subscribe", NodeSettings.always_subscribe, read_only)
        self.declare_parameter("connection_check_period", NodeSettings.connection_check_period, read_only)

        # Reconfigurable parameters
        defaults = EqualizationConfig()
        self.declare_parameter(
            "histogram_equalization_type",
            defaults.equalization_type.value,
            ParameterDescriptor(
                description=(
                    f"Histogram equalization method, one of {[t.value for t in EqualizationType]} "
                    "or the integer codes 0 (CLAHE) and 1 (global)"
                ),
                dynamic_typing=True,
            ),
        )
        tile_range = IntegerRange(from_value=TILE_SIZE_MIN, to_value=TILE_SIZE_MAX, step=1)
        self.declare_parameter(
            "clahe_tile_size_x",
            defaults.clahe_tile_size_x,
            ParameterDescriptor(description="Tile size x for CLAHE", integer_range=[tile_range]),
        )
        self.declare_parameter(
            "clahe_tile_size_y",
            defaults.clahe_tile_size_y,
            ParameterDescriptor(description="Tile size y for CLAHE", integer_range=[tile_range]),
        )
        self.declare_parameter(
            "clahe_clip_limit",
            defaults.clahe_clip_limit,
            ParameterDescriptor(
                description="Clip limit for CLAHE",
                floating_point_range=[
                    FloatingPointRange(from_value=CLIP_LIMIT_MIN, to_value=CLIP_LIMIT_MAX, step=0.0)
                ],
            ),
        )
        self.declare_parameter(
            "use_camera_info",
            defaults.use_camera_info,
            ParameterDescriptor(
                description="Subscribe to camera_info and take the output frame id from it"
            ),
        )

        try:
            self.settings = NodeSettings(
                queue_size=self.get_parameter("queue_size").value,
                debug_view=self.get_parameter("debug_view").value,
                use_opencl=self.get_parameter("use_opencl").value,
                always_subscribe=self.get_parameter("always_subscribe").value,
                connection_check_period=float(self.get_parameter("connection_check_period").value),
            )
            config = EqualizationConfig.from_parameters(
                {name: self.get_parameter(name).value for name in defaults.as_parameters()}
            )
        except ValueError as ex:
            self.get_logger().fatal(f"Missing or invalid parameters: {ex}")
            raise

        cv2.ocl.setUseOpenCL(self.settings.use_opencl)

        self.equalizer = HistogramEqualizer(use_opencl=self.settings.use_opencl)
        self.equalizer.initialize(config)
        self.br = CvBridge()
        self.debug_view = self.settings.debug_view

        self.image_sub = None
        self.cam_image_sub: Optional[message_filters.Subscriber] = None
        self.cam_info_sub: Optional[message_filters.Subscriber] = None
        self.cam_sync: Optional[message_filters.TimeSynchronizer] = None
        self.subscribed = False

        self.image_pub = self.create_publisher(Image, self.output_topic, 1)
        self.add_on_set_parameters_callback(self.reconfigure_callback)

        self.get_logger().info(
            f"EqualizeHistogramNode initialized with input topic: {self.input_topic}, "
            f"output topic: {self.output_topic}"
        )
        self.get_logger().info(f"Using: {self.equalizer}, settings: {self.settings}")

        if self.settings.always_subscribe:
            self.subscribe()
        self.connection_timer = self.create_timer(
            self.settings.connection_check_period, self.check_connections
        )

    @property
    def config(self) -> EqualizationConfig:
        return self.equalizer.config

    def reconfigure_callback(self, params: List[Parameter]) -> SetParametersResult:
        current = self.equalizer.config
        try:
            new_config = current.merged({p.name: p.value for p in params})
        except ValueError as ex:
            self.get_logger().warn(f"Rejected parameter update: {ex}")
            return SetParametersResult(successful=False, reason=str(ex))

        if new_config != current:
            self.equalizer.reconfigure(new_config)
            self.get_logger().info(f"Reconfigured: {new_config}")
            if self.subscribed and new_config.use_camera_info != current.use_camera_info:
                self.unsubscribe()
                self.subscribe()
        return SetParametersResult(successful=True)

    def check_connections(self) -> None:
        if self.settings.always_subscribe:
            return
        listeners = self.image_pub.get_subscription_count()
        if listeners > 0 and not self.subscribed:
            self.subscribe()
        elif listeners == 0 and self.subscribed:
            self.unsubscribe()

    def subscribe(self) -> None:
        self.get_logger().debug("Subscribing to image topic.")
        qos = QoSProfile(depth=self.settings.queue_size)
        if self.config.use_camera_info:
            info_topic = camera_info_topic(self.resolve_topic_name(self.input_topic))
            self.cam_image_sub = message_filters.Subscriber(self, Image, self.input_topic, qos_profile=qos)
            self.cam_info_sub = message_filters.Subscriber(self, CameraInfo, info_topic, qos_profile=qos)
            self.cam_sync = message_filters.TimeSynchronizer(
                [self.cam_image_sub, self.cam_info_sub], self.settings.queue_size
            )
            self.cam_sync.registerCallback(self.image_with_info_callback)
            self.get_logger().info(f"Subscribed to {self.input_topic} with camera info {info_topic}")
        else:
            self.image_sub = self.create_subscription(Image, self.input_topic, self.image_callback, qos)
            self.get_logger().info(f"Subscribed to {self.input_topic}")
        self.subscribed = True

    def unsubscribe(self) -> None:
        self.get_logger().debug("Unsubscribing from image topic.")
        if self.image_sub is not None:
            self.destroy_subscription(self.image_sub)
            self.image_sub = None
        for filter_sub in (self.cam_image_sub, self.cam_info_sub):
            if filter_sub is not None:
                self.destroy_subscription(filter_sub.sub)
        self.cam_image_sub = None
        self.cam_info_sub = None
        self.cam_sync = None
        if self.subscribed:
            self.get_logger().info(f"Unsubscribed from {self.input_topic}")
        self.subscribed = False

    def image_callback(self, msg: Image) -> None:
        self.do_work(msg, msg.header.frame_id)

    def image_with_info_callback(self, msg: Image, cam_info: CameraInfo) -> None:
        self.do_work(msg, cam_info.header.frame_id)

    def do_work(self, msg: Image, input_frame_from_msg: str) -> Optional[Image]:
        """Equalize ``msg`` and publish it under ``input_frame_from_msg``. Returns the published message."""
        try:
            if msg.encoding not in GRAYSCALE_CONVERSIONS:
                raise UnsupportedEncodingError(msg.encoding)
            check_buffer(msg.encoding, msg.height, msg.width, msg.step, len(msg.data))
            # ROS2 -> OpenCV
            frame = self.br.imgmsg_to_cv2(msg, desired_encoding="passthrough")
            dst = self.equalizer.process(frame, msg.encoding)
        except (UnsupportedEncodingError, MalformedFrameError) as e:
            self.get_logger().warn(f"Dropping frame: {e}")
            return None
        except ProcessingError as e:
            self.get_logger().error(f"Image processing error: {e.err} {e.func} {e.file} {e.line}")
            return None
        except (CvBridgeError, TypeError, ValueError) as e:
            # cv_bridge builds the array straight from msg.data
            self.get_logger().error(f"Image conversion error: {e}")
            return None

        if self.debug_view:
            self.show_debug_view(dst)

        # OpenCV -> ROS2
        header = Header(stamp=msg.header.stamp, frame_id=input_frame_from_msg)
        out_msg = self.br.cv2_to_imgmsg(dst, encoding="mono8", header=header)
        self.image_pub.publish(out_msg)
        return out_msg

    def show_debug_view(self, image) -> None:
        """Show ``image`` in the debug window; turns the view off if no GUI backend is available."""
        try:
            cv2.namedWindow(OPENCV_WINDOW, cv2.WINDOW_AUTOSIZE)
            cv2.imshow(OPENCV_WINDOW, image)
            cv2.waitKey(1)
        except cv2.error as e:
            error = ProcessingError.from_cv_error(e)
            self.get_logger().error(
                f"Debug view disabled: {error.err} {error.func} {error.file} {error.line}"
            )
            self.debug_view = False

    def destroy_node(self):
        self.unsubscribe()
        if self.debug_view:
            cv2.destroyAllWindows()
        return super().destroy_node()
