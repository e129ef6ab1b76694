"""User-facing messages for booking outcomes, keyed by result code."""

from barberbook.config import settings

FALLBACK_LANGUAGE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "booked": "Your appointment on {date} at {time} is booked.",
        "cancelled": "Your appointment has been cancelled.",
        "already_cancelled": "This appointment was already cancelled.",
        "rescheduled": "Your appointment has been moved to {date} at {time}.",
        "slot_unavailable": "This time slot has just been taken. Please select another time.",
        "schedule_violation": "The selected time is not available. Please choose another time.",
        "hold_creation_failed": "Booking failed. Please try again.",
        "booking_creation_failed": "Booking failed. Please try again.",
        "cleanup_failed": (
            "Booking failed and the time slot could not be released. "
            "Please contact the shop."
        ),
        "booking_not_found": "We could not find this appointment.",
        "invalid_booking_request": "This request could not be processed.",
        "cancellation_failed": "Failed to cancel the appointment. Please try again.",
        "invalid_token": "This registration link is invalid.",
        "token_expired": "This registration link has expired.",
        "token_already_used": "This registration link has already been used.",
        "store_unavailable": "Something went wrong. Please try again.",
    },
    "tr": {
        "booked": "{date} tarihinde saat {time} için randevunuz oluşturuldu.",
        "cancelled": "Randevunuz iptal edildi.",
        "already_cancelled": "Bu randevu zaten iptal edilmiş.",
        "rescheduled": "Randevunuz {date} tarihinde saat {time} olarak değiştirildi.",
        "slot_unavailable": "Bu saat az önce alındı. Lütfen başka bir saat seçin.",
        "schedule_violation": "Seçilen saat uygun değil. Lütfen başka bir saat seçin.",
        "hold_creation_failed": "Randevu oluşturulamadı. Lütfen tekrar deneyin.",
        "booking_creation_failed": "Randevu oluşturulamadı. Lütfen tekrar deneyin.",
        "cleanup_failed": (
            "Randevu oluşturulamadı ve saat serbest bırakılamadı. "
            "Lütfen dükkanla iletişime geçin."
        ),
        "booking_not_found": "Bu randevu bulunamadı.",
        "invalid_booking_request": "Bu istek işlenemedi.",
        "cancellation_failed": "Randevu iptal edilemedi. Lütfen tekrar deneyin.",
        "invalid_token": "Bu kayıt bağlantısı geçersiz.",
        "token_expired": "Bu kayıt bağlantısının süresi dolmuş.",
        "token_already_used": "Bu kayıt bağlantısı zaten kullanılmış.",
        "store_unavailable": "Bir hata oluştu. Lütfen tekrar deneyin.",
    },
    "ar": {
        "booked": "تم حجز موعدك في {date} الساعة {time}.",
        "cancelled": "تم إلغاء موعدك.",
        "already_cancelled": "تم إلغاء هذا الموعد مسبقاً.",
        "rescheduled": "تم نقل موعدك إلى {date} الساعة {time}.",
        "slot_unavailable": "تم حجز هذا الوقت للتو. يرجى اختيار وقت آخر.",
        "schedule_violation": "الوقت المحدد غير متاح. يرجى اختيار وقت آخر.",
        "hold_creation_failed": "فشل الحجز. يرجى المحاولة مرة أخرى.",
        "booking_creation_failed": "فشل الحجز. يرجى المحاولة مرة أخرى.",
        "cleanup_failed": "فشل الحجز ولم يتم تحرير الوقت. يرجى التواصل مع المحل.",
        "booking_not_found": "لم نتمكن من العثور على هذا الموعد.",
        "invalid_booking_request": "تعذرت معالجة هذا الطلب.",
        "cancellation_failed": "فشل إلغاء الموعد. يرجى المحاولة مرة أخرى.",
        "invalid_token": "رابط التسجيل هذا غير صالح.",
        "token_expired": "انتهت صلاحية رابط التسجيل هذا.",
        "token_already_used": "تم استخدام رابط التسجيل هذا بالفعل.",
        "store_unavailable": "حدث خطأ ما. يرجى المحاولة مرة أخرى.",
    },
}


def get_message(code: str, language: str = settings.default_language, **params: str) -> str:
    """Translated message for ``code``; unknown languages and codes fall back to English."""
    table = MESSAGES.get(language, MESSAGES[FALLBACK_LANGUAGE])
    template = table.get(code) or MESSAGES[FALLBACK_LANGUAGE].get(code)
    if template is None:
        template = MESSAGES[FALLBACK_LANGUAGE]["store_unavailable"]
    return template.format(**params) if params else template
