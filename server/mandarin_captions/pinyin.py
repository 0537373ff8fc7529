"""拼音查表：常用汉字 → 带声调拼音，模型漏给拼音时兜底。

多音字只收最常用读音。表外汉字原样保留。
"""

from __future__ import annotations

import re

# 每行：拼音 + 该读音下的常用字
_TABLE = """
a 啊阿
ài 爱
ān 安
bā 八巴
bǎ 把
bà 爸
ba 吧
bái 白
bǎi 百
bān 班般
bàn 半办
bāng 帮
bàng 棒
bāo 包
bǎo 宝饱保
bào 报抱
bēi 杯背
běi 北
bèi 被备
běn 本
bǐ 比笔
bì 必
biān 边
biàn 便变
biǎo 表
bié 别
bīng 冰
bìng 病并
bō 玻
bù 不步部布
cài 菜
cǎo 草
céng 层
chá 茶查
chà 差
cháng 长常尝
chǎng 场厂
chàng 唱
chē 车
chéng 城成
chī 吃
chū 出初
chú 除厨
chuān 穿川
chuán 船
chuāng 窗
chuáng 床
chūn 春
cí 词
cì 次
cóng 从
cù 醋
cuò 错
dà 大
dài 带代戴
dān 单
dàn 但蛋
dāng 当
dǎo 岛
dào 到道
de 的得
dēng 灯
děng 等
dī 低
dì 地弟第
diǎn 点
diàn 电店
dōng 东冬
dǒng 懂
dòng 动
dōu 都
dòu 豆
dú 读
duǎn 短
duì 对
duō 多
duǒ 朵
è 饿
ér 儿
ěr 耳
èr 二
fā 发
fàn 饭
fāng 方
fáng 房
fàng 放
fēi 飞非
fēn 分
fěn 粉
fēng 风
fū 夫
fú 服
fù 父
gāi 该
gān 干
gǎn 感
gāng 刚
gāo 高
gào 告
gē 哥歌
gè 个
gěi 给
gēn 跟
gèng 更
gōng 工公
gǒu 狗
gū 姑
gǔ 古
guā 瓜
guān 关
guǎn 馆
guāng 光
guǎng 广
guì 贵
guó 国
guǒ 果
guò 过
hái 还孩
hǎi 海
hàn 汉
hǎo 好
hào 号
hē 喝
hé 和河合
hēi 黑
hěn 很
hóng 红
hòu 后
hú 湖
hǔ 虎
hù 户
huā 花
huà 话画
huān 欢
huán 环
huáng 黄
huī 灰
huí 回
huì 会
huǒ 火
huò 或
jī 机鸡
jí 级极
jǐ 几
jì 记
jiā 家加
jià 假
jiān 间
jiǎn 简
jiàn 见件
jiāng 江
jiǎng 讲
jiāo 交
jiǎo 脚角
jiào 叫
jiē 街
jié 节
jiě 姐
jiè 界
jīn 今金
jìn 近进
jīng 京
jǐng 景
jìng 静
jiǔ 九久酒
jiù 就
jú 橘
jù 句
jué 觉
kā 咖
kāi 开
kàn 看
kǎo 考烤
kě 可渴
kè 课客
kōng 空
kǒu 口
kū 哭
kù 裤
kuài 快块
lā 拉
là 辣
lái 来
lán 蓝
lǎo 老
le 了
lè 乐
lèi 累
lěng 冷
lí 离
lǐ 里李
lì 力立丽
liǎ 俩
lián 连
liǎn 脸
liàn 练
liáng 凉
liǎng 两
liàng 亮
lín 林
líng 零
liú 流
liù 六
lóu 楼
lù 路
lǚ 旅
lǜ 绿
luò 落
mā 妈
mǎ 马
ma 吗
mǎi 买
mài 卖
màn 慢
máng 忙
māo 猫
máo 毛
me 么
méi 没
měi 美每
mèi 妹
mén 门
men 们
mǐ 米
miàn 面
míng 明名
mǔ 母
mù 木
ná 拿
nǎ 哪
nà 那
nǎi 奶
nán 男南难
nǎo 脑
ne 呢
néng 能
nǐ 你
nián 年
niǎo 鸟
nín 您
niú 牛
nǚ 女
nuǎn 暖
pà 怕
pái 排
pàng 胖
pǎo 跑
péng 朋
piān 篇
pián 便
piàn 片
piào 票
piào 漂
píng 平瓶苹
pó 婆
qī 七期
qí 其骑
qǐ 起
qì 气
qiān 千
qián 前钱
qiáng 墙
qīng 青清轻
qíng 情晴
qǐng 请
qiū 秋
qù 去
quán 全
qún 裙
rán 然
ràng 让
rè 热
rén 人
rèn 认
rì 日
ròu 肉
rú 如
sān 三
sàn 散
sè 色
sēn 森
shā 沙
shān 山
shàng 上
shāo 烧
shǎo 少
shé 蛇
shéi 谁
shēn 身深
shén 什
shēng 生声
shī 师诗
shí 十时识食石
shǐ 使始
shì 是事市室试视
shǒu 手
shòu 瘦
shū 书
shǔ 鼠
shù 树
shuāng 双
shuǐ 水
shuì 睡
shuō 说
sī 思
sì 四
sòng 送
suān 酸
suì 岁
sūn 孙
tā 他她它
tài 太
táng 糖
tāng 汤
tè 特
tí 题
tǐ 体
tiān 天
tián 甜田
tiáo 条
tiào 跳
tīng 听
tíng 停
tóng 同
tóu 头
tú 图
tù 兔
wài 外
wán 玩完
wǎn 晚碗
wàn 万
wǎng 网
wàng 忘望
wèi 为位
wén 文
wèn 问
wǒ 我
wū 屋
wǔ 五午
wù 物
xī 西吸
xí 习
xǐ 喜洗
xì 戏
xià 下夏
xiān 先鲜
xiàn 现
xiāng 香
xiǎng 想
xiàng 像向
xiǎo 小
xiào 笑校
xiē 些
xié 鞋
xiě 写
xiè 谢
xīn 新心
xìn 信
xīng 星
xíng 行
xìng 姓
xióng 熊
xiū 休
xué 学
xuě 雪
yā 鸭
yán 颜
yǎn 眼
yáng 羊阳
yàng 样
yào 要药
yé 爷
yě 也
yè 叶夜
yī 一衣
yǐ 以已
yì 意
yīn 因音
yín 银
yǐn 饮
yīng 应
yǐng 影
yòng 用
yóu 游油
yǒu 有友
yòu 又右
yú 鱼
yǔ 雨语
yù 玉
yuán 元园圆
yuǎn 远
yuàn 院
yuè 月
yún 云
yùn 运
zài 在再
zǎo 早
zěn 怎
zhāng 张
zhǎng 长
zhǎo 找
zhào 照
zhè 这
zhe 着
zhēn 真
zhèng 正
zhī 只知
zhí 直
zhǐ 纸
zhōng 中
zhǒng 种
zhòng 重
zhōu 周
zhū 猪
zhǔ 主
zhù 住
zhuō 桌
zǐ 紫
zì 字自
zǒu 走
zú 足
zuì 最
zuó 昨
zuǒ 左
zuò 做坐作
"""

# 解析后的 字 → 拼音；同一字先出现的读音优先
_CHAR_PINYIN: dict[str, str] = {}
for _line in _TABLE.strip().splitlines():
    _syllable, _chars = _line.split()
    for _ch in _chars:
        _CHAR_PINYIN.setdefault(_ch, _syllable)

_PUNCTUATION = {
    "，": ",",
    "。": ".",
    "！": "!",
    "？": "?",
    "：": ":",
    "；": ";",
    "、": ",",
    "“": '"',
    "”": '"',
    "（": "(",
    "）": ")",
}

_HAN = re.compile(r"[一-鿿]")
_WORD = re.compile(r"[A-Za-z0-9]+")


def has_chinese(text: str) -> bool:
    return bool(_HAN.search(text or ""))


def char_pinyin(ch: str) -> str | None:
    """单字查表，查不到返回 None。"""
    return _CHAR_PINYIN.get(ch)


def to_pinyin(text: str) -> str:
    """整句转拼音，音节之间用单个空格分隔。

    英文/数字整体保留，中文标点转为 ASCII 并贴在前一个音节后。
    """
    tokens: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        word = _WORD.match(text, i)
        if word:
            tokens.append(word.group())
            i = word.end()
            continue
        if ch in _PUNCTUATION or ch in ",.!?:;":
            mark = _PUNCTUATION.get(ch, ch)
            if tokens:
                tokens[-1] += mark
            else:
                tokens.append(mark)
        elif not ch.isspace():
            tokens.append(_CHAR_PINYIN.get(ch, ch))
        i += 1
    return " ".join(tokens)

