# remindify

remindify turns text and screenshots into reminders. It sends the text or image
to a Dify application, reads the task that comes back (title, date, time,
priority, list) and builds a `Reminder` from it. A local JSON cache records the
tasks and images already handled, so the same one is not processed twice.

## Installation

```
pip install remindify
```

For the tests:

```
pip install "remindify[test]"
pytest
```

## Parts of the package

- `remindify.models`: data classes `ParsedTaskInfo`, `Reminder`,
  `ParsedReminder`, `DifyConfig`, `DifyResponse`, `ProcessingOptions`,
  `ValidationResult`, `ProcessingResponse`, and the `Priority` and
  `ContentType` enums.
- `remindify.client`: `DifyClient` sends chat messages (`process_text`),
  uploads an image and runs the workflow on it (`process_image`), and uploads
  files (`upload_file`). Failed requests raise `DifyAPIError`.
- `remindify.response_parser`: `ResponseParser.parse_reminder_response` reads
  task information from task JSON, from a Dify reply wrapping task JSON, from
  text containing a JSON object, or from plain text. It raises
  `ResponseParseError` when no complete task (title, `YYYY-MM-DD` date,
  `HH:MM` time) can be found.
- `remindify.screenshot_processor`: `ScreenshotProcessor` checks a
  `ScreenshotInput` (at most 10 MB; png, jpg, jpeg, bmp or gif with a matching
  header), sends it to Dify and returns a `Reminder`. Problems raise
  `ScreenshotError`.
- `remindify.processor`: `Processor` processes text or images and returns a
  `ProcessingResponse` with the parsed task, its validation result and, when
  the confidence reaches the threshold, a `Reminder`. Failures raise
  `ProcessingError`, whose `response` attribute holds the failed response.
  Time ranges such as `14:30 - 16:30` or `14:30到16:30` are accepted.
- `remindify.cache_manager`: `CacheManager` keeps `submitted_tasks.json` and
  `image_hashes.json` in a cache directory. Entries older than 30 days are
  dropped on load and by `cleanup_expired_tasks` / `cleanup_expired_images`.
- `remindify.deduplicator`: `Deduplicator` checks reminders and images against
  the cache and records new ones.
- `remindify.image_normalizer`: `ImageNormalizer` shrinks Pillow images to the
  configured limits, converts them to RGBA and writes PNG or JPEG.
- `remindify.image_config`: `ImageProcessingConfig` stores those settings in
  `image_processing.json`; `ConfigManager` loads them and saves debug and
  cached images, deleting the oldest cached files beyond `max_cache_files`.
- `remindify.errors`: `AppError` with an `ErrorType` and code, helpers that
  create errors (`new_validation_error`, `new_timeout_error`, ...), and
  `wrap_error`, `is_retryable`, `get_error_type`, `get_error_code`.
- `remindify.log_manager`: `LogManager` configured by `LoggingConfig`, writing
  to the console and to `remindify.log` in the log directory; `get_instance`
  and `initialize` manage a shared manager.

## Examples

Turning a screenshot into a reminder:

```python
from remindify.models import DifyConfig
from remindify.screenshot_processor import ScreenshotInput, ScreenshotProcessor

config = DifyConfig(api_endpoint="https://dify.example.com/v1", api_key="placeholder", timeout=30)
processor = ScreenshotProcessor.from_config(config)

with open("meeting.png", "rb") as fh:
    shot = ScreenshotInput(data=fh.read(), file_name="meeting.png", format="png")

reminder = processor.process_screenshot(shot)
print(reminder.title, reminder.date, reminder.time, reminder.priority)
```

Parsing a workflow answer without calling the API:

```python
from remindify.response_parser import ResponseParser

info = ResponseParser().parse_reminder_response(
    '{"title": "Team meeting", "date": "2025-11-15", "time": "14:00"}'
)
print(info.title, info.date, info.time)
```

Skipping a task that was already recorded:

```python
from remindify.cache_manager import CacheManager
from remindify.deduplicator import Deduplicator
from remindify.models import ParsedReminder, Reminder

reminder = ParsedReminder(
    original=Reminder(title="Team meeting", date="2025-11-15", time="14:00"),
    list="Work",
)

dedup = Deduplicator(None, CacheManager("cache"))
if not dedup.check_duplicate(reminder).is_duplicate:
    ...  # hand the reminder on
    dedup.record_submitted_task(reminder, "task-id")
```

## What the package does not do

remindify is a library; it has no command-line program. It does not read the
clipboard and does not submit reminders to any to-do or calendar service: it
produces `Reminder` objects and remembers which ones were recorded, and handing
them to a task service is left to the caller.