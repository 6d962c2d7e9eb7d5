#!/usr/bin/env python3

# SPDX-License-Identifier: GPL-3.0-or-later

import rclpy

from image_equalization.equalization import equalization_utils


def main(args=None):
    rclpy.init(args=args)

    equalize_node = equalization_utils.EqualizeHistogramNode(
        node_name="equalize_histogram",
        input_topic="image",
        output_topic="~/image",
    )
    try:
        rclpy.spin(equalize_node)
    except KeyboardInterrupt:
        pass
    finally:
        equalize_node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()


if __name__ == "__main__":
    main()
