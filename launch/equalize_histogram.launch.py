import os

from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.conditions import IfCondition
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    default_params = os.path.join(
        get_package_share_directory("image_equalization"), "config", "equalize_histogram.yaml"
    )

    # Declare launch arguments
    image_topic = DeclareLaunchArgument(
        "image",
        default_value="/camera/image_raw",
        description="Input image topic (camera_info is taken from the same namespace)"
    )

    params_file = DeclareLaunchArgument(
        "params_file",
        default_value=default_params,
        description="Parameter file for the equalize_histogram node"
    )

    use_camera_info = DeclareLaunchArgument(
        "use_camera_info",
        default_value="false",
        description="Take the output frame id from camera_info"
    )

    debug_view = DeclareLaunchArgument(
        "debug_view",
        default_value="false",
        description="Show the equalized image in an OpenCV window"
    )

    use_fake_camera = DeclareLaunchArgument(
        "use_fake_camera",
        default_value="false",
        description="Start a synthetic camera publishing on the input topic namespace"
    )

    equalize_node = Node(
        package="image_equalization",
        executable="equalize_histogram",
        name="equalize_histogram",
        parameters=[
            LaunchConfiguration("params_file"),
            {
                "use_camera_info": LaunchConfiguration("use_camera_info"),
                "debug_view": LaunchConfiguration("debug_view"),
            },
        ],
        remappings=[("image", LaunchConfiguration("image"))],
    )

    fake_camera_node = Node(
        package="image_equalization",
        executable="fake_camera",
        name="fake_camera",
        namespace="camera",
        remappings=[("image", "image_raw")],
        condition=IfCondition(LaunchConfiguration("use_fake_camera")),
    )

    return LaunchDescription([
            image_topic,
            params_file,
            use_camera_info,
            debug_view,
            use_fake_camera,
            equalize_node,
            fake_camera_node,
    ])
