from config import load_config
from time_utils import format_tz_offset, from_epoch_ms, resolve_timezone
from wake_alarm.models import KEY_NEXT_EPOCH_MS
from wake_alarm.storage import JsonPreferenceStore, read_alarm_config


def main():
    config = load_config()
    store = JsonPreferenceStore(config.prefs_path)
    alarm = read_alarm_config(store)
    print(f"Preferences: {config.prefs_path}")
    if alarm is None:
        print("No wake alarm configured")
        return
    if alarm.is_valid():
        print(f"Wake time: {alarm.wake_hour:02d}:{alarm.wake_min:02d}")
    else:
        print(f"Wake time: {alarm.wake_hour!r}:{alarm.wake_min!r} (INVALID)")
    print(f"Timezone: {alarm.tz_id or '(system default)'} offset={format_tz_offset(alarm.tz_offset_min)}")
    next_ms = store.get(KEY_NEXT_EPOCH_MS)
    if isinstance(next_ms, int):
        tz, _ = resolve_timezone(alarm.tz_id)
        print(f"Next trigger: {from_epoch_ms(next_ms, tz).isoformat()} (epoch ms {next_ms})")
    else:
        print("Next trigger: not cached")


if __name__ == "__main__":
    main()
