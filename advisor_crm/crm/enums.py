from __future__ import annotations

from enum import Enum


class OpportunityStage(str, Enum):
    PESQUISA = "Pesquisa"
    QUALIFICACAO = "Qualificação"
    PROPOSTA = "Proposta"
    NEGOCIACAO = "Negociação"
    GANHO = "Ganho"
    PERDIDO = "Perdido"


# Board column order.
ALL_OPPORTUNITY_STAGES: list[OpportunityStage] = list(OpportunityStage)


class ActivityType(str, Enum):
    REUNIAO = "Reunião"
    LIGACAO = "Ligação"
    EMAIL = "E-mail"
    OPERACIONAL = "Operacional"
    TAREFA = "Tarefa"


class ActivityPriority(str, Enum):
    ALTA = "Alta"
    MEDIA = "Média"
    BAIXA = "Baixa"


class ActivityStatus(str, Enum):
    A_FAZER = "A Fazer"
    EM_ANDAMENTO = "Em Andamento"
    CONCLUIDA = "Concluída"


class ClientType(str, Enum):
    PF = "PF"
    PJ = "PJ"


class ComplianceStatus(str, Enum):
    PENDENTE = "Pendente"
    EM_DIA = "Em Dia"
    ATRASADO = "Atrasado"


class RiskProfile(str, Enum):
    CONSERVADOR = "Conservador"
    MODERADO = "Moderado"
    ARROJADO = "Arrojado"
    AGRESSIVO = "Agressivo"


class TransactionType(str, Enum):
    APLICACAO = "Aplicação"
    RESGATE = "Resgate"
    FEE = "Fee"
    FATURA = "Fatura"


class TransactionStatus(str, Enum):
    PENDENTE = "Pendente"
    REQUER_APROVACAO = "Requer Aprovação"
    APROVADA = "Aprovada"
    LIQUIDADA = "Liquidada"
    REJEITADA = "Rejeitada"
