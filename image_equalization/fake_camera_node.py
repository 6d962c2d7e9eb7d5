#!/usr/bin/env python3

# SPDX-License-Identifier: GPL-3.0-or-later

import rclpy
from rclpy.node import Node
from sensor_msgs.msg import CameraInfo, Image
from cv_bridge import CvBridge
import cv2
import numpy as np


def generate_image(width: int, height: int, frame_count: int, encoding: str = 'bgr8') -> np.ndarray:
    """Generate a low contrast synthetic frame, so equalization has something to do"""
    # Vertical gradient squeezed into a narrow intensity band
    column = np.linspace(90, 140, height, dtype=np.float32).reshape(-1, 1)
    image = np.repeat(column, width, axis=1).astype(np.uint8)
    image = cv2.merge([image, image, image])

    # Moving shape
    center = ((frame_count * 5) % width, height // 2)
    radius = min(width, height) // 6
    cv2.circle(image, center, radius, (150, 120, 100), -1)

    cv2.putText(image, f'Frame: {frame_count}', (20, 40),
                cv2.FONT_HERSHEY_SIMPLEX, 0.8, (160, 160, 160), 2)

    # Sensor noise
    noise = np.random.randint(0, 8, image.shape, dtype=np.uint8)
    image = cv2.add(image, noise)

    if encoding == 'mono8':
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


class FakeCameraNode(Node):
    def __init__(self):
        super().__init__('fake_camera')

        # Parameters
        self.declare_parameter('publish_rate', 10.0)  # Hz
        self.declare_parameter('image_width', 640)
        self.declare_parameter('image_height', 480)
        self.declare_parameter('encoding', 'bgr8')
        self.declare_parameter('frame_id', 'camera_frame')
        self.declare_parameter('camera_info_frame_id', 'camera_optical_frame')

        rate = self.get_parameter('publish_rate').value
        self.width = self.get_parameter('image_width').value
        self.height = self.get_parameter('image_height').value
        self.encoding = self.get_parameter('encoding').value
        self.frame_id = self.get_parameter('frame_id').value
        self.camera_info_frame_id = self.get_parameter('camera_info_frame_id').value

        if self.encoding not in ('bgr8', 'mono8'):
            self.get_logger().fatal(f'Unsupported encoding parameter: {self.encoding}')
            raise ValueError(f'encoding must be bgr8 or mono8 (got {self.encoding})')

        self.bridge = CvBridge()

        # Publishers
        self.image_pub = self.create_publisher(Image, 'image', 10)
        self.info_pub = self.create_publisher(CameraInfo, 'camera_info', 10)

        timer_period = 1.0 / rate
        self.timer = self.create_timer(timer_period, self.timer_callback)

        self.frame_count = 0

        self.get_logger().info('Fake Camera Node started')
        self.get_logger().info(f'Publishing {self.encoding} at {rate} Hz, {self.width}x{self.height}')

    def camera_info(self) -> CameraInfo:
        """Pinhole model with the principal point in the image center"""
        info = CameraInfo()
        info.width = self.width
        info.height = self.height
        info.distortion_model = 'plumb_bob'
        info.d = [0.0] * 5
        f = float(self.width)
        cx = self.width / 2.0
        cy = self.height / 2.0
        info.k = [f, 0.0, cx, 0.0, f, cy, 0.0, 0.0, 1.0]
        info.r = [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0]
        info.p = [f, 0.0, cx, 0.0, 0.0, f, cy, 0.0, 0.0, 0.0, 1.0, 0.0]
        return info

    def timer_callback(self):
        """Publish an image and its camera info with the same stamp"""
        try:
            stamp = self.get_clock().now().to_msg()

            image = generate_image(self.width, self.height, self.frame_count, self.encoding)
            image_msg = self.bridge.cv2_to_imgmsg(image, self.encoding)
            image_msg.header.stamp = stamp
            image_msg.header.frame_id = self.frame_id

            info_msg = self.camera_info()
            info_msg.header.stamp = stamp
            info_msg.header.frame_id = self.camera_info_frame_id

            self.image_pub.publish(image_msg)
            self.info_pub.publish(info_msg)

            self.frame_count += 1

        except Exception as e:
            self.get_logger().error(f'Error publishing images: {e}')


def main(args=None):
    rclpy.init(args=args)
    node = FakeCameraNode()

    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()


if __name__ == '__main__':
    main()
