"""Customer-facing chat messages (pt-BR, WhatsApp formatting).

Option numbers are rendered in ``*bold*``; every list numbers its items from
1 in the same order the dialogue later uses to resolve the reply.
"""

from typing import Optional

from petcare.business_calendar import format_br_date
from petcare.config import settings
from petcare.schemas.booking_schema import Appointment, AppointmentSummary, CandidateDate
from petcare.schemas.catalog_schema import Professional, Service
from petcare.schemas.customer_schema import Pet
from petcare.schemas.session_schema import BookingDraft

_biz = settings.business

BACK_HINT = "*voltar*"

ASK_OWNER_NAME = "Olá! Para começar, qual o seu nome?"
ASK_FIRST_PET_NAME = "Ótimo! Agora, qual o nome do seu pet?"
ASK_PET_NAME_NO_PETS = "Você não tem pets cadastrados. Qual o nome do seu pet?"
ASK_NEW_PET_NAME = "Qual o nome do novo pet?"
ASK_PET_NAME = "Qual o nome do seu pet?"
ASK_NAME_AGAIN = "Por favor, digite um nome válido."
ASK_MANUAL_DATE = "Por favor, informe a data desejada no formato DD/MM/AAAA:"

INVALID_PET = "Por favor, digite um número válido da lista de pets."
INVALID_SERVICE = f"Por favor, digite um número válido do serviço ou {BACK_HINT} para retornar ao menu."
INVALID_PROFESSIONAL = "Por favor, digite um número válido do profissional."
INVALID_DATE_OPTION = f"Por favor, escolha uma data válida da lista ou digite {BACK_HINT}."
INVALID_TIME_OPTION = f"Por favor, escolha um horário válido da lista ou digite {BACK_HINT}."
INVALID_CONFIRMATION = "Por favor, digite *1* para confirmar ou *2* para cancelar."
INVALID_CANCELLATION_CHOICE = (
    "Opção inválida. Por favor, digite o número de um dos agendamentos listados."
)
INVALID_REMINDER_REPLY = "Por favor, digite 1 para confirmar ou 2 para cancelar o agendamento."

MANUAL_DATE_BAD_FORMAT = f"Formato de data inválido. Por favor, use DD/MM/AAAA ou digite {BACK_HINT}."
MANUAL_DATE_PAST = (
    "Não é possível agendar para datas passadas. "
    "Por favor, escolha uma data futura no formato DD/MM/AAAA."
)
MANUAL_DATE_EXCLUDED = (
    "Este dia da semana não está disponível para agendamento. Por favor, escolha outra data."
)
NO_TIMES_FOR_DATE = (
    "Não há horários disponíveis para esta data com este profissional. "
    "Por favor, escolha outra data."
)
SLOT_TAKEN = "Ops! Esse horário acabou de ser reservado por outra pessoa."
BOOKING_FAILED = (
    "❌ Não foi possível concluir o agendamento agora. "
    f"Digite *1* para tentar novamente ou {BACK_HINT} para retornar ao menu."
)
BOOKING_DISCARDED = "Agendamento cancelado."

NO_FUTURE_APPOINTMENTS = "Você não possui agendamentos futuros para cancelar."
APPOINTMENTS_LOOKUP_FAILED = (
    "❌ Ocorreu um erro ao buscar seus agendamentos. Tente novamente mais tarde."
)
CANCELLATION_ABORTED = "Cancelamento não confirmado. Voltando ao menu."
APPOINTMENT_NOT_FOUND = (
    "❌ Código de agendamento não encontrado ou não pertence a você. Verifique e tente novamente."
)
CANCELLATION_FAILED = "❌ Não foi possível cancelar o agendamento. Tente novamente."
REMINDER_ACKNOWLEDGED = "Obrigado pela confirmação!"


def menu_message() -> str:
    return (
        "Olá! Sou sua assistente virtual.\n\n"
        "Digite o número da opção desejada:\n\n"
        "*1* - Novo agendamento\n"
        "*2* - Cancelar Agendamento\n"
        "*3* - Falar com Atendente"
    )


def handoff_message(pause_minutes: int) -> str:
    return (
        "📞 Um atendente entrará em contato em breve!\n\n"
        "Nosso horário de atendimento:\n"
        f"🕐 {_biz.hours_weekday}\n"
        f"🕐 {_biz.hours_saturday}\n\n"
        f"O atendimento automático será pausado por {pause_minutes} minutos."
    )


def pets_message(pets: list[Pet]) -> str:
    lines = ["Qual dos seus pets deseja agendar?", ""]
    lines += [f"*{index}* - {pet.name}" for index, pet in enumerate(pets, start=1)]
    lines += ["", "*0* - Adicionar outro pet"]
    return "\n".join(lines)


def services_message(services: list[Service]) -> str:
    lines = [
        "Qual serviço deseja agendar?",
        "",
        f"Digite o número correspondente ao serviço que deseja agendar, ou digite {BACK_HINT}:",
        "",
    ]
    lines += [f"*{service.id}* - {service.name}" for service in services]
    return "\n".join(lines)


def professionals_message(professionals: list[Professional]) -> str:
    lines = ["Com qual profissional deseja agendar?", ""]
    lines += [f"*{prof.id}* - {prof.name}" for prof in professionals]
    return "\n".join(lines)


def dates_message(dates: list[CandidateDate], manual_option: int) -> str:
    if not dates:
        return (
            "Não há datas disponíveis para agendamento nos próximos dias.\n"
            f"Digite *{manual_option}* para informar uma data específica ou {BACK_HINT}."
        )
    parts = [
        "Qual a data que deseja marcar?\n"
        f"Digite em qual data deseja agendar, *{manual_option}* para outras datas "
        f"ou {BACK_HINT}:\n"
    ]
    for index, candidate in enumerate(dates, start=1):
        parts.append(f"*{index}* - {candidate.day_label}\n{candidate.display}\n")
    parts.append(f"*{manual_option}* - Data específica\nInformar outra data")
    return "\n".join(parts)


def times_message(date_display: str, times: list[str]) -> str:
    lines = [
        f"Agendamento em: *{date_display}*",
        f"Por favor digite uma das opções de horário abaixo ou {BACK_HINT}:",
        "",
    ]
    lines += [f"*{index}* - {slot}" for index, slot in enumerate(times, start=1)]
    return "\n".join(lines)


def confirmation_summary(draft: BookingDraft) -> str:
    return (
        "Confirmar dados\n"
        f"DATA: {format_br_date(draft.date)} às {draft.time}\n"
        f"Serviço: {draft.service}\n"
        f"Pet: {draft.pet_name}\n"
        f"Tutor: {draft.owner_name}\n"
        f"Profissional: {draft.professional_name}\n\n"
        "*1* - Sim\n"
        "*2* - Não"
    )


def _format_price(price: Optional[float]) -> str:
    if price is None:
        return "-"
    return f"R$ {price:.2f}".replace(".", ",")


def booking_confirmed_message(appointment: Appointment, draft: BookingDraft) -> str:
    return (
        "✅ *Agendamento Confirmado!*\n\n"
        "📋 *Detalhes:*\n"
        f"📅 Data: {format_br_date(appointment.date)}\n"
        f"🕐 Horário: {appointment.time}\n"
        f"🛁 Serviço: {appointment.service}\n"
        f"🐾 Pet: {appointment.pet_name}\n"
        f"👤 Tutor: {appointment.owner_name}\n"
        f"💰 Valor: {_format_price(draft.price)}\n"
        f"👩‍⚕️ Profissional: {draft.professional_name}\n\n"
        "📍 *Endereço:*\n"
        f"{_biz.address}\n\n"
        f"*Código do agendamento:* #{appointment.id}\n\n"
        "Você receberá um lembrete antes do horário! 📱"
    )


def _appointment_line(appointment: AppointmentSummary) -> str:
    return (
        f"{appointment.pet_name} - {appointment.service} - "
        f"{format_br_date(appointment.date)} às {appointment.time}"
    )


def cancellation_list_message(appointments: list[AppointmentSummary]) -> str:
    lines = ["Qual agendamento você gostaria de cancelar?", ""]
    lines += [
        f"*{index}* - *{_appointment_line(appt)}*"
        for index, appt in enumerate(appointments, start=1)
    ]
    lines += ["", "Digite o número do agendamento para cancelar."]
    return "\n".join(lines)


def cancellation_selected_message(appointment: AppointmentSummary) -> str:
    return (
        f"Você selecionou o agendamento *{_appointment_line(appointment)}*.\n"
        "Digite *1* para confirmar o cancelamento."
    )


def cancellation_done_message(appointment: Appointment) -> str:
    summary = AppointmentSummary.from_appointment(appointment)
    return f"✅ Agendamento *{_appointment_line(summary)}* cancelado com sucesso!"


def reminder_message(appointment: Appointment, when: str) -> str:
    return (
        f"Olá *{appointment.owner_name}*! Lembrete do agendamento para "
        f"*{appointment.pet_name} {when} às {appointment.time}*.\n\n"
        "👉 Para confirmar sua presença, responda:\n"
        "*1* - CONFIRMAR ✅\n"
        "*2* - CANCELAR o agendamento ❌"
    )
