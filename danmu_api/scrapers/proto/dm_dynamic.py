"""
在运行时构建 B站弹幕分段 (seg.so) 的 Protobuf 消息类，无需 protoc 生成代码。

对应的 .proto:
    package biliproto.community.service.dm.v1;
    message DmSegMobileReply { repeated DanmakuElem elems = 1; int32 state = 2; Flag ai_flag_for_summary = 3; }
"""
from google.protobuf.descriptor_pb2 import FieldDescriptorProto, FileDescriptorProto
from google.protobuf.descriptor_pool import DescriptorPool
from google.protobuf.message_factory import GetMessageClass

PACKAGE = 'biliproto.community.service.dm.v1'

_T = FieldDescriptorProto

# (字段名, 字段号, 类型)
_DANMAKU_ELEM_FIELDS = [
    ('id', 1, _T.TYPE_INT64),
    ('progress', 2, _T.TYPE_INT32),  # 毫秒
    ('mode', 3, _T.TYPE_INT32),  # 弹幕模式 (位置)
    ('fontsize', 4, _T.TYPE_INT32),
    ('color', 5, _T.TYPE_UINT32),  # 十进制 RGB
    ('midHash', 6, _T.TYPE_STRING),
    ('content', 7, _T.TYPE_STRING),
    ('ctime', 8, _T.TYPE_INT64),
    ('weight', 9, _T.TYPE_INT32),
    ('action', 10, _T.TYPE_STRING),
    ('pool', 11, _T.TYPE_INT32),
    ('idStr', 12, _T.TYPE_STRING),
    ('attr', 13, _T.TYPE_INT32),
    ('animation', 14, _T.TYPE_STRING),
    ('like_num', 15, _T.TYPE_UINT32),
    ('color_v2', 16, _T.TYPE_STRING),
    ('dm_type_v2', 17, _T.TYPE_UINT32),
]

_FLAG_FIELDS = [
    ('value', 1, _T.TYPE_INT32),
    ('description', 2, _T.TYPE_STRING),
]


def _add_message(file_proto: FileDescriptorProto, name: str, fields):
    message = file_proto.message_type.add()
    message.name = name
    for field_name, number, field_type in fields:
        message.field.add(name=field_name, number=number, type=field_type, label=_T.LABEL_OPTIONAL)
    return message


def _build_file() -> FileDescriptorProto:
    file_proto = FileDescriptorProto(name='dm.proto', package=PACKAGE, syntax='proto3')
    _add_message(file_proto, 'DanmakuElem', _DANMAKU_ELEM_FIELDS)
    _add_message(file_proto, 'Flag', _FLAG_FIELDS)

    reply = _add_message(file_proto, 'DmSegMobileReply', [('state', 2, _T.TYPE_INT32)])
    reply.field.add(name='elems', number=1, type=_T.TYPE_MESSAGE, label=_T.LABEL_REPEATED,
                    type_name=f'.{PACKAGE}.DanmakuElem')
    reply.field.add(name='ai_flag_for_summary', number=3, type=_T.TYPE_MESSAGE, label=_T.LABEL_OPTIONAL,
                    type_name=f'.{PACKAGE}.Flag')
    return file_proto


pool = DescriptorPool()
pool.Add(_build_file())


def _message_class(name: str):
    return GetMessageClass(pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


DanmakuElem = _message_class('DanmakuElem')
Flag = _message_class('Flag')
DmSegMobileReply = _message_class('DmSegMobileReply')
