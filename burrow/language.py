"""Language support primitives for burrow prompts with Rich styling."""

from __future__ import annotations

from typing import Dict, Optional

from rich.text import Text

# Supported interface languages
LANGUAGES: Dict[str, str] = {
    "en": "English",
    "zh": "中文",
}

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "cli_description": "Send files, directories and text to another computer using a short code",
        "cli_usage": "%(prog)s <command> [options]",
        "cli_usage_prefix": "usage:",
        "cli_error": "Error: {error}",
        "cli_commands_title": "commands",
        "cli_positionals_title": "positional arguments",
        "cli_optionals_title": "optional arguments",
        "cli_version_help": "show burrow version and exit",
        "cli_version_output": "burrow version {version}",
        "cli_help_help": "show this help message and exit",
        "cli_verbose_help": "increase log verbosity (-v info, -vv debug)",
        "cli_send_help": "Send a file or directory",
        "cli_send_usage": "%(prog)s PATH [options]",
        "cli_send_dir_usage": "%(prog)s PATH [options]",
        "cli_send_text_usage": "%(prog)s [TEXT] [options]",
        "cli_receive_usage": "%(prog)s [CODE] [options]",
        "cli_settings_usage": "%(prog)s [options]",
        "cli_send_path_help": "Path to the file or directory to send",
        "cli_send_dir_help": "Send a directory",
        "cli_send_dir_path_help": "Path to the directory to send",
        "cli_send_text_help": "Send a short text message",
        "cli_send_text_arg_help": "Text to send (prompted when omitted)",
        "cli_qr_help": "also show the code as a QR code",
        "cli_clipboard_help": "also copy the code to the clipboard",
        "cli_code_length_help": "number of words in the generated code",
        "cli_port_help": "TCP port to listen on (default: 45856, or any free port if it is taken)",
        "cli_receive_help": "Receive a file, directory or text",
        "cli_receive_code_help": "Code announced by the sender (prompted when omitted)",
        "cli_receive_dir_help": "Directory to save received files into",
        "cli_receive_yes_help": "accept the offer without asking",
        "cli_receive_peer_help": "Connect to HOST[:PORT] directly instead of searching the LAN",
        "cli_settings_help": "Show or change persistent defaults",
        "cli_settings_language_help": "Interface language (available: {codes})",
        "cli_settings_qr_help": "Show QR codes by default (on|off)",
        "cli_settings_clipboard_help": "Copy codes to the clipboard by default (on|off)",
        "cli_settings_auto_accept_help": "Accept incoming offers without asking (on|off)",
        "cli_settings_download_dir_help": "Default directory for received files (empty to reset)",
        "cli_settings_grace_help": "Seconds to wait for a cancelled transfer to stop",
        "cli_settings_code_length_help": "Default number of words in generated codes",
        "cli_settings_port_help": "Default TCP port for sending (0 clears it)",
        "code_announce": "Wormhole code is: {code}",
        "code_instructions": "On the other computer, please run:  burrow receive {code}",
        "code_receiving": "Receiving with code {code}",
        "code_qr_caption": "Or scan this QR code:",
        "clipboard_copied": "Code copied to clipboard.",
        "channel_failed": "Could not present the code via {channel}: {error}",
        "connecting": "Looking for the sender...",
        "waiting_peer": "Waiting for the receiver to connect... Press Ctrl+C to cancel.",
        "cancel_requested": "Interrupt received, cancelling. Press Ctrl+C again to force quit.",
        "cancel_forced": "Forced exit.",
        "offer_file": "Incoming file '{name}' ({size}).",
        "offer_directory": "Incoming directory '{name}' ({size}).",
        "offer_text": "Incoming text message ({size}):",
        "offer_text_preview": "  {preview}",
        "prompt_accept": "Accept? [y/N]: ",
        "auto_accepted": "Offer accepted automatically.",
        "progress_line": "{percent:>3}% {transferred} / {total} ({rate}/s, ETA {eta})",
        "progress_stalled": " stalled {elapsed}",
        "progress_aborted": " aborted",
        "progress_aborted_idle": "Transfer aborted before any data moved.",
        "send_complete": "Transfer complete: sent {size} in {elapsed}.",
        "receive_complete_file": "Received '{name}' ({size}) in {elapsed}. Saved to {path}",
        "receive_complete_text": "Received text message:\n{text}",
        "session_failed_rendezvous": "Could not connect to the peer: {reason}",
        "session_failed_transfer": "Transfer failed: {reason}",
        "session_rejected": "Transfer rejected.",
        "session_cancelled": "Transfer cancelled.",
        "file_not_found": "Path not found: {path}",
        "not_a_directory": "'{path}' is not a directory.",
        "prompt_code": "Enter code: ",
        "prompt_text": "Text to send: ",
        "text_empty": "Nothing to send.",
        "operation_cancelled": "Operation cancelled.",
        "receive_dir_error": "Failed to prepare directory: {error}",
        "peer_invalid": "Invalid peer address '{value}'. Use HOST or HOST:PORT.",
        "port_invalid": "Invalid port number '{value}'.",
        "code_length_invalid": "Code length must be between {low} and {high}.",
        "settings_header": "Current settings:",
        "settings_entry": "  {name}: {value}",
        "settings_updated": "Saved {name} = {value}.",
        "settings_value_invalid": "Invalid value for {name}: '{value}'.",
        "settings_language_invalid": "Invalid language code '{value}'. Available: {codes}.",
        "settings_unset": "(not set)",
    },
    "zh": {
        "cli_description": "使用简短口令向另一台电脑发送文件、目录或文本",
        "cli_usage": "%(prog)s <命令> [选项]",
        "cli_usage_prefix": "用法:",
        "cli_error": "错误: {error}",
        "cli_commands_title": "命令",
        "cli_positionals_title": "位置参数",
        "cli_optionals_title": "可选参数",
        "cli_version_help": "显示 burrow 版本并退出",
        "cli_version_output": "burrow 版本 {version}",
        "cli_help_help": "显示此帮助信息并退出",
        "cli_verbose_help": "提高日志详细程度（-v 信息，-vv 调试）",
        "cli_send_help": "发送文件或目录",
        "cli_send_usage": "%(prog)s 路径 [选项]",
        "cli_send_dir_usage": "%(prog)s 路径 [选项]",
        "cli_send_text_usage": "%(prog)s [文本] [选项]",
        "cli_receive_usage": "%(prog)s [口令] [选项]",
        "cli_settings_usage": "%(prog)s [选项]",
        "cli_send_path_help": "要发送的文件或目录路径",
        "cli_send_dir_help": "发送目录",
        "cli_send_dir_path_help": "要发送的目录路径",
        "cli_send_text_help": "发送一段短文本",
        "cli_send_text_arg_help": "要发送的文本（省略时提示输入）",
        "cli_qr_help": "同时以二维码显示口令",
        "cli_clipboard_help": "同时将口令复制到剪贴板",
        "cli_code_length_help": "生成口令的单词数量",
        "cli_port_help": "监听的 TCP 端口（默认 45856，被占用时自动选择）",
        "cli_receive_help": "接收文件、目录或文本",
        "cli_receive_code_help": "发送方给出的口令（省略时提示输入）",
        "cli_receive_dir_help": "接收文件的保存目录",
        "cli_receive_yes_help": "无需确认直接接收",
        "cli_receive_peer_help": "直接连接 HOST[:PORT]，不在局域网中搜索",
        "cli_settings_help": "查看或修改默认设置",
        "cli_settings_language_help": "界面语言（可选值：{codes}）",
        "cli_settings_qr_help": "默认显示二维码（on|off）",
        "cli_settings_clipboard_help": "默认复制口令到剪贴板（on|off）",
        "cli_settings_auto_accept_help": "无需确认直接接收（on|off）",
        "cli_settings_download_dir_help": "默认接收目录（留空恢复默认）",
        "cli_settings_grace_help": "取消传输后等待其停止的秒数",
        "cli_settings_code_length_help": "生成口令的默认单词数量",
        "cli_settings_port_help": "发送时默认使用的 TCP 端口（0 表示清除）",
        "code_announce": "传输口令：{code}",
        "code_instructions": "请在另一台电脑上运行：  burrow receive {code}",
        "code_receiving": "正在使用口令 {code} 接收",
        "code_qr_caption": "或扫描下方二维码：",
        "clipboard_copied": "口令已复制到剪贴板。",
        "channel_failed": "无法通过 {channel} 显示口令：{error}",
        "connecting": "正在寻找发送方...",
        "waiting_peer": "等待接收方连接... 按 Ctrl+C 取消。",
        "cancel_requested": "收到中断信号，正在取消。再次按 Ctrl+C 强制退出。",
        "cancel_forced": "已强制退出。",
        "offer_file": "收到文件“{name}”（{size}）。",
        "offer_directory": "收到目录“{name}”（{size}）。",
        "offer_text": "收到文本消息（{size}）：",
        "offer_text_preview": "  {preview}",
        "prompt_accept": "是否接收？[y/N]：",
        "auto_accepted": "已自动接收。",
        "progress_line": "{percent:>3}% 已传输 {transferred} / {total}（{rate}/秒，剩余 {eta}）",
        "progress_stalled": " 已停滞 {elapsed}",
        "progress_aborted": " 已中止",
        "progress_aborted_idle": "传输在开始传送数据前已中止。",
        "send_complete": "传输完成：用时 {elapsed} 发送了 {size}。",
        "receive_complete_file": "已接收“{name}”（{size}），用时 {elapsed}。保存到 {path}",
        "receive_complete_text": "收到文本消息：\n{text}",
        "session_failed_rendezvous": "无法连接到对方：{reason}",
        "session_failed_transfer": "传输失败：{reason}",
        "session_rejected": "已拒绝本次传输。",
        "session_cancelled": "已取消本次传输。",
        "file_not_found": "路径不存在：{path}",
        "not_a_directory": "“{path}”不是目录。",
        "prompt_code": "请输入口令：",
        "prompt_text": "请输入要发送的文本：",
        "text_empty": "没有可发送的内容。",
        "operation_cancelled": "操作已取消。",
        "receive_dir_error": "无法准备保存目录：{error}",
        "peer_invalid": "对方地址“{value}”无效，请使用 HOST 或 HOST:PORT。",
        "port_invalid": "端口号“{value}”无效。",
        "code_length_invalid": "口令单词数量必须在 {low} 到 {high} 之间。",
        "settings_header": "当前设置：",
        "settings_entry": "  {name}：{value}",
        "settings_updated": "已保存 {name} = {value}。",
        "settings_value_invalid": "{name} 的取值“{value}”无效。",
        "settings_language_invalid": "语言代码“{value}”无效，可选值：{codes}。",
        "settings_unset": "（未设置）",
    },
}

TONE_STYLES: Dict[str, str] = {
    "heading": "bold bright_cyan",
    "info": "bright_black",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "prompt": "cyan",
}


MESSAGE_TONES: Dict[str, str] = {
    "code_announce": "heading",
    "code_instructions": "info",
    "code_receiving": "info",
    "clipboard_copied": "info",
    "channel_failed": "warning",
    "connecting": "info",
    "waiting_peer": "info",
    "cancel_requested": "warning",
    "cancel_forced": "error",
    "prompt_accept": "prompt",
    "prompt_code": "prompt",
    "prompt_text": "prompt",
    "auto_accepted": "info",
    "send_complete": "success",
    "receive_complete_file": "success",
    "receive_complete_text": "success",
    "session_failed_rendezvous": "error",
    "session_failed_transfer": "error",
    "session_rejected": "warning",
    "session_cancelled": "warning",
    "file_not_found": "error",
    "not_a_directory": "error",
    "text_empty": "warning",
    "receive_dir_error": "error",
    "peer_invalid": "error",
    "port_invalid": "error",
    "code_length_invalid": "error",
    "settings_header": "heading",
    "settings_updated": "success",
    "settings_value_invalid": "error",
    "settings_language_invalid": "error",
    "progress_line": "",
    "progress_aborted_idle": "error",
}


def get_message(key: str, language: str, **kwargs: object) -> str:
    """
    Retrieve a formatted message for the requested language.
    Falls back to English when the message or language is missing.
    """

    lang_messages = MESSAGES.get(language, MESSAGES["en"])
    template = lang_messages.get(key, MESSAGES["en"].get(key, key))
    return template.format(**kwargs)


def render_message(
    key: str,
    language: str,
    *,
    tone: Optional[str] = None,
    **kwargs: object,
) -> Text:
    """Return a Rich Text object for the requested message with consistent styling."""

    message = get_message(key, language, **kwargs)
    text = Text(message)
    resolved_tone = tone or MESSAGE_TONES.get(key)
    if resolved_tone:
        style = TONE_STYLES.get(resolved_tone, resolved_tone)
        if style:
            text.stylize(style)
    return text
