"""
campusgrid — Консоль онбординга школьных групп CampusGrid.

Клиентская библиотека оператора платформы:
    • мастер онбординга (WizardState + FieldValidator)
    • одноразовая выдача учётных данных администратора (CredentialVault)
    • реестр групп и жизненный цикл статусов (GroupRegistry + StatusMachine)
"""

__version__ = "0.3.0"
